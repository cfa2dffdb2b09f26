# dynart/registry/registry.py
"""
Asset registry.

Tracks which assets exist, who owns them, per-owner balances, and the two
kinds of approval:
- a single approved spender per asset, cleared on every ownership change
- operator relations (owner, operator) granting rights over all of an
  owner's assets, current and future

Identifiers are allocated from 1 upward and never reused. There is no burn.

Every mutation validates all of its preconditions before changing anything
and runs under the registry lock, so readers never see a partial update. A
mutation that fails after changing memory (disk write, rejected safe
transfer) restores the snapshot taken before it started.
"""

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..errors import (
    AlreadyExists,
    InvalidOwner,
    InvalidRecipient,
    NotFound,
    Unauthorized,
    UnsafeRecipient,
)
from ..identity import NULL_ADDRESS, normalize_address
from ..receivers import RecipientCheck, accept_all
from .events import (
    ApprovalEvent,
    ApprovalForAllEvent,
    Event,
    EventLog,
    TransferEvent,
    write_json,
)

logger = logging.getLogger(__name__)


@dataclass
class Asset:
    """
    A registered asset.

    Attributes:
        asset_id: Positive identifier, allocated once
        owner: Current owner (never the null identity)
        approved: Single approved spender, NULL_ADDRESS when unset
        created_at: Timestamp of allocation
    """
    asset_id: int
    owner: str
    approved: str = NULL_ADDRESS
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "owner": self.owner,
            "approved": self.approved,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Asset":
        return cls(
            asset_id=data["asset_id"],
            owner=data["owner"],
            approved=data.get("approved", NULL_ADDRESS),
            created_at=data.get("created_at", time.time()),
        )


class Registry:
    """
    The asset registry.

    State lives in memory. When store_dir is given it is also written after
    every committed mutation and reloaded on start:

        store_dir/
            registry.json     # next id, assets, balances, operators
            events.json       # notification log
    """

    def __init__(
        self,
        store_dir: Optional[Path | str] = None,
        events: Optional[EventLog] = None,
        recipient_check: Optional[RecipientCheck] = None,
    ):
        """
        Initialize the registry.

        Args:
            store_dir: Optional directory for persistent state
            events: Notification log (default: new log, persisted in store_dir)
            recipient_check: Acceptance check used by safe_transfer
        """
        self.store_dir = Path(store_dir) if store_dir else None
        self.recipient_check = recipient_check or accept_all
        self._lock = threading.RLock()
        self._next_id = 1
        self._assets: Dict[int, Asset] = {}
        self._balances: Dict[str, int] = {}
        self._operators: Dict[Tuple[str, str], bool] = {}

        if self.store_dir:
            self.store_dir.mkdir(parents=True, exist_ok=True)
            self._load()
        self.events = events if events is not None else EventLog(self.store_dir)

    # -- persistence -------------------------------------------------------

    def _index_path(self) -> Path:
        return self.store_dir / "registry.json"

    def _load(self):
        """Load registry state from disk."""
        index_path = self._index_path()
        if not index_path.exists():
            return
        with open(index_path) as f:
            data = json.load(f)
        self._next_id = data.get("next_id", 1)
        self._assets = {
            int(asset_id): Asset.from_dict(asset_data)
            for asset_id, asset_data in data.get("assets", {}).items()
        }
        self._balances = dict(data.get("balances", {}))
        self._operators = {
            (entry["owner"], entry["operator"]): True
            for entry in data.get("operators", [])
        }
        logger.info(f"Loaded registry with {len(self._assets)} assets from {index_path}")

    def _save(self):
        """Save registry state to disk."""
        if not self.store_dir:
            return
        data = {
            "version": "1.0",
            "next_id": self._next_id,
            "assets": {str(a.asset_id): a.to_dict() for a in self._assets.values()},
            "balances": {k: v for k, v in self._balances.items() if v},
            "operators": [
                {"owner": owner, "operator": operator}
                for (owner, operator), approved in self._operators.items()
                if approved
            ],
        }
        write_json(self._index_path(), data)

    # -- helpers -----------------------------------------------------------

    def _require(self, asset_id: int) -> Asset:
        asset = self._assets.get(asset_id)
        if asset is None:
            raise NotFound(asset_id)
        return asset

    def _is_operator(self, owner: str, operator: str) -> bool:
        return self._operators.get((owner, operator), False)

    def _can_transfer(self, caller: str, asset: Asset) -> bool:
        return (
            caller == asset.owner
            or caller == asset.approved
            or self._is_operator(asset.owner, caller)
        )

    def _check_transfer(self, caller: str, from_: str, to: str, asset_id: int) -> Asset:
        """Validate a transfer without changing anything."""
        asset = self._require(asset_id)
        if not self._can_transfer(caller, asset):
            raise Unauthorized(caller, asset_id)
        if from_ != asset.owner:
            raise InvalidOwner(f"{from_} is not the owner of asset {asset_id}")
        if to == NULL_ADDRESS:
            raise InvalidRecipient()
        return asset

    def _move(self, asset: Asset, from_: str, to: str) -> None:
        asset.approved = NULL_ADDRESS
        self._balances[from_] -= 1
        self._balances[to] = self._balances.get(to, 0) + 1
        asset.owner = to

    def _snapshot(self) -> Dict[str, Any]:
        """Copy of everything a mutation can touch, events included."""
        return {
            "next_id": self._next_id,
            "assets": {k: Asset.from_dict(a.to_dict()) for k, a in self._assets.items()},
            "balances": dict(self._balances),
            "operators": dict(self._operators),
            "events": len(self.events),
        }

    def _restore(self, snapshot: Dict[str, Any]) -> None:
        """Put memory (and the files, when persisted) back to a snapshot."""
        self._next_id = snapshot["next_id"]
        self._assets = snapshot["assets"]
        self._balances = snapshot["balances"]
        self._operators = snapshot["operators"]
        self.events.truncate(snapshot["events"])
        self._save()

    def _commit(self, snapshot: Dict[str, Any], event: Event) -> None:
        """Persist a mutation and emit its event, or undo it entirely."""
        try:
            self._save()
            self.events.append(event)
        except Exception:
            logger.error(f"Failed to commit {event.event_type}, restoring previous state")
            self._restore(snapshot)
            raise

    # -- mutations ---------------------------------------------------------

    def allocate_and_assign(self, caller: str) -> int:
        """
        Allocate the next identifier and assign it to the caller.

        Returns:
            The new asset identifier

        Raises:
            InvalidRecipient: If caller is the null identity
        """
        caller = normalize_address(caller)
        with self._lock:
            if caller == NULL_ADDRESS:
                raise InvalidRecipient("Cannot assign an asset to the null identity")
            asset_id = self._next_id
            if asset_id in self._assets:
                raise AlreadyExists(asset_id)

            snapshot = self._snapshot()
            self._assets[asset_id] = Asset(asset_id=asset_id, owner=caller)
            self._balances[caller] = self._balances.get(caller, 0) + 1
            self._next_id += 1
            self._commit(snapshot, TransferEvent(NULL_ADDRESS, caller, asset_id))
            logger.info(f"Allocated asset {asset_id} to {caller}")
            return asset_id

    def approve(self, caller: str, asset_id: int, spender: str) -> None:
        """
        Set the single approved spender of an asset.

        Raises:
            NotFound: If the asset does not exist
            Unauthorized: Unless caller is the owner or one of its operators
        """
        caller = normalize_address(caller)
        spender = normalize_address(spender)
        with self._lock:
            asset = self._require(asset_id)
            if caller != asset.owner and not self._is_operator(asset.owner, caller):
                raise Unauthorized(caller, asset_id)
            snapshot = self._snapshot()
            asset.approved = spender
            self._commit(snapshot, ApprovalEvent(asset.owner, spender, asset_id))
            logger.debug(f"Asset {asset_id} approved for {spender} by {caller}")

    def set_approval_for_all(self, caller: str, operator: str, approved: bool) -> None:
        """Grant or revoke `operator` rights over all of the caller's assets."""
        caller = normalize_address(caller)
        operator = normalize_address(operator)
        approved = bool(approved)
        with self._lock:
            snapshot = self._snapshot()
            if approved:
                self._operators[(caller, operator)] = True
            else:
                self._operators.pop((caller, operator), None)
            self._commit(snapshot, ApprovalForAllEvent(caller, operator, approved))
            logger.debug(f"Operator {operator} for {caller}: {approved}")

    def transfer(self, caller: str, from_: str, to: str, asset_id: int) -> None:
        """
        Move an asset from `from_` to `to`.

        Raises:
            NotFound: If the asset does not exist
            Unauthorized: Unless caller is owner, approved spender or operator
            InvalidOwner: If `from_` is not the current owner
            InvalidRecipient: If `to` is the null identity
        """
        caller = normalize_address(caller)
        from_ = normalize_address(from_)
        to = normalize_address(to)
        with self._lock:
            asset = self._check_transfer(caller, from_, to, asset_id)
            snapshot = self._snapshot()
            self._move(asset, from_, to)
            self._commit(snapshot, TransferEvent(from_, to, asset_id))
            logger.info(f"Asset {asset_id} transferred {from_} -> {to}")

    def safe_transfer(
        self,
        caller: str,
        from_: str,
        to: str,
        asset_id: int,
        data: bytes = b"",
    ) -> None:
        """
        Transfer, then require the recipient to accept the asset.

        The check runs with the asset already owned by `to` and may call
        back into the registry. If it rejects (or fails), the registry is
        restored to its state before the call, including anything the check
        itself changed, and no Transfer notification for this call is kept.

        Raises:
            UnsafeRecipient: If the recipient did not accept
            (plus everything transfer() raises)
        """
        caller = normalize_address(caller)
        from_ = normalize_address(from_)
        to = normalize_address(to)
        with self._lock:
            asset = self._check_transfer(caller, from_, to, asset_id)
            snapshot = self._snapshot()
            self._move(asset, from_, to)

            error = None
            try:
                accepted = self.recipient_check(caller, from_, to, asset_id, data or b"")
            except Exception as e:
                accepted = False
                error = e

            if not accepted:
                self._restore(snapshot)
                logger.info(f"Safe transfer of asset {asset_id} rejected by {to}")
                reason = (str(error) or type(error).__name__) if error else None
                raise UnsafeRecipient(to, reason) from error

            self._commit(snapshot, TransferEvent(from_, to, asset_id))
            logger.info(f"Asset {asset_id} safely transferred {from_} -> {to}")

    # -- reads -------------------------------------------------------------

    def exists(self, asset_id: int) -> bool:
        with self._lock:
            return asset_id in self._assets

    def get(self, asset_id: int) -> Asset:
        """Snapshot copy of an asset record."""
        with self._lock:
            return Asset.from_dict(self._require(asset_id).to_dict())

    def owner_of(self, asset_id: int) -> str:
        with self._lock:
            return self._require(asset_id).owner

    def balance_of(self, identity: str) -> int:
        identity = normalize_address(identity)
        if identity == NULL_ADDRESS:
            raise InvalidOwner("Balance query for the null identity")
        with self._lock:
            return self._balances.get(identity, 0)

    def get_approved(self, asset_id: int) -> str:
        with self._lock:
            return self._require(asset_id).approved

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        owner = normalize_address(owner)
        operator = normalize_address(operator)
        with self._lock:
            return self._is_operator(owner, operator)

    def assets_of(self, owner: str) -> List[int]:
        """Identifiers currently owned by `owner`, ascending."""
        owner = normalize_address(owner)
        with self._lock:
            return sorted(a.asset_id for a in self._assets.values() if a.owner == owner)

    @property
    def total_supply(self) -> int:
        with self._lock:
            return len(self._assets)

    @property
    def next_id(self) -> int:
        with self._lock:
            return self._next_id

    def __contains__(self, asset_id: int) -> bool:
        return self.exists(asset_id)

    def __len__(self) -> int:
        return self.total_supply

    def __iter__(self):
        with self._lock:
            return iter([Asset.from_dict(a.to_dict()) for a in self._assets.values()])
