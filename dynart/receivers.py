# dynart/receivers.py
"""
Recipient acceptance checks for safe transfers.

A receiver is an identity that must explicitly accept incoming assets,
the way a contract account implements an "on received" hook. Identities
without a registered hook are plain accounts and always accept.

Usage:
    receivers = ReceiverRegistry()

    @receivers.receiver(VAULT)
    def vault_accepts(operator, from_, asset_id, data):
        return data != b"reject"
"""

import logging
from typing import Callable, Dict, Optional

from .identity import normalize_address

logger = logging.getLogger(__name__)

# hook(operator, from_, asset_id, data) -> accepted
AcceptanceHook = Callable[[str, str, int, bytes], bool]

# check(operator, from_, to, asset_id, data) -> accepted
RecipientCheck = Callable[[str, str, str, int, bytes], bool]


def accept_all(operator: str, from_: str, to: str, asset_id: int, data: bytes) -> bool:
    """Trivial check: every recipient accepts."""
    return True


class ReceiverRegistry:
    """Maps receiver identities to their acceptance hooks."""

    def __init__(self):
        self._hooks: Dict[str, AcceptanceHook] = {}

    def register(self, identity: str, hook: AcceptanceHook) -> None:
        identity = normalize_address(identity)
        if identity in self._hooks:
            logger.warning(f"Overwriting acceptance hook for {identity}")
        self._hooks[identity] = hook

    def receiver(self, identity: str) -> Callable[[AcceptanceHook], AcceptanceHook]:
        """Decorator form of register()."""
        def decorator(hook: AcceptanceHook) -> AcceptanceHook:
            self.register(identity, hook)
            return hook
        return decorator

    def unregister(self, identity: str) -> bool:
        identity = normalize_address(identity)
        if identity not in self._hooks:
            return False
        del self._hooks[identity]
        return True

    def get(self, identity: str) -> Optional[AcceptanceHook]:
        return self._hooks.get(normalize_address(identity))

    def check(self, operator: str, from_: str, to: str, asset_id: int, data: bytes) -> bool:
        """
        Ask `to` whether it accepts the asset.

        A hook that raises counts as a rejection; the error propagates to
        the caller so the reason can be reported.
        """
        hook = self.get(to)
        if hook is None:
            return True
        return bool(hook(operator, from_, asset_id, data))

    def __call__(self, operator: str, from_: str, to: str, asset_id: int, data: bytes) -> bool:
        return self.check(operator, from_, to, asset_id, data)

    def __contains__(self, identity: str) -> bool:
        return normalize_address(identity) in self._hooks

    def __len__(self) -> int:
        return len(self._hooks)
