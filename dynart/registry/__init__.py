# dynart/registry/__init__.py
"""
Asset registry.

The registry owns asset existence, ownership, balances and approvals, and
logs a notification for every committed change.

Example:
    registry = Registry()
    asset_id = registry.allocate_and_assign(alice)
    registry.approve(alice, asset_id, bob)
    registry.transfer(bob, alice, carol, asset_id)
"""

from .registry import Registry, Asset
from .events import (
    Event,
    EventLog,
    TransferEvent,
    ApprovalEvent,
    ApprovalForAllEvent,
)

__all__ = [
    "Registry",
    "Asset",
    "Event",
    "EventLog",
    "TransferEvent",
    "ApprovalEvent",
    "ApprovalForAllEvent",
]
