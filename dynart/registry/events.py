# dynart/registry/events.py
"""
Registry notifications.

Every committed mutation appends one event to an append-only EventLog:
- Transfer: mint (from the null identity) and ownership changes
- Approval: a single-asset spender was set
- ApprovalForAll: an operator relation was set

Subscribers are called synchronously after the event is logged.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


def write_json(path: Path, data: Dict[str, Any]) -> None:
    """Write JSON through a temp file in the same directory, then rename it into place."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


@dataclass
class Event:
    """Base notification. `seq` is assigned by the log."""
    seq: int = field(default=0, init=False)

    event_type = "Event"

    def identities(self) -> List[str]:
        return []

    def asset(self) -> Optional[int]:
        return None

    def _fields(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return {"seq": self.seq, "type": self.event_type, **self._fields()}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Event":
        event_cls = EVENT_TYPES.get(data.get("type"))
        if event_cls is None:
            raise ValueError(f"Unknown event type: {data.get('type')}")
        event = event_cls._from_fields(data)
        event.seq = data.get("seq", 0)
        return event


@dataclass
class TransferEvent(Event):
    from_: str = ""
    to: str = ""
    asset_id: int = 0

    event_type = "Transfer"

    def identities(self) -> List[str]:
        return [self.from_, self.to]

    def asset(self) -> Optional[int]:
        return self.asset_id

    def _fields(self) -> Dict[str, Any]:
        return {"from": self.from_, "to": self.to, "asset_id": self.asset_id}

    @classmethod
    def _from_fields(cls, data: Dict[str, Any]) -> "TransferEvent":
        return cls(from_=data["from"], to=data["to"], asset_id=data["asset_id"])


@dataclass
class ApprovalEvent(Event):
    owner: str = ""
    approved: str = ""
    asset_id: int = 0

    event_type = "Approval"

    def identities(self) -> List[str]:
        return [self.owner, self.approved]

    def asset(self) -> Optional[int]:
        return self.asset_id

    def _fields(self) -> Dict[str, Any]:
        return {"owner": self.owner, "approved": self.approved, "asset_id": self.asset_id}

    @classmethod
    def _from_fields(cls, data: Dict[str, Any]) -> "ApprovalEvent":
        return cls(owner=data["owner"], approved=data["approved"], asset_id=data["asset_id"])


@dataclass
class ApprovalForAllEvent(Event):
    owner: str = ""
    operator: str = ""
    approved: bool = False

    event_type = "ApprovalForAll"

    def identities(self) -> List[str]:
        return [self.owner, self.operator]

    def _fields(self) -> Dict[str, Any]:
        return {"owner": self.owner, "operator": self.operator, "approved": self.approved}

    @classmethod
    def _from_fields(cls, data: Dict[str, Any]) -> "ApprovalForAllEvent":
        return cls(owner=data["owner"], operator=data["operator"], approved=data["approved"])


EVENT_TYPES = {
    cls.event_type: cls
    for cls in (TransferEvent, ApprovalEvent, ApprovalForAllEvent)
}

Subscriber = Callable[[Event], None]


class EventLog:
    """
    Append-only notification log.

    Structure (when store_dir is given):
        store_dir/
            events.json       # All events in order
    """

    def __init__(self, store_dir: Optional[Path | str] = None):
        self.store_dir = Path(store_dir) if store_dir else None
        self._events: List[Event] = []
        self._subscribers: List[Subscriber] = []
        if self.store_dir:
            self.store_dir.mkdir(parents=True, exist_ok=True)
            self._load()

    def _log_path(self) -> Path:
        return self.store_dir / "events.json"

    def _load(self):
        """Load events from disk."""
        log_path = self._log_path()
        if log_path.exists():
            try:
                with open(log_path) as f:
                    data = json.load(f)
                self._events = [Event.from_dict(e) for e in data.get("events", [])]
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                logger.warning(f"Failed to load event log: {e}")
                self._events = []

    def _save(self):
        """Save events to disk."""
        data = {
            "version": "1.0",
            "events": [e.to_dict() for e in self._events],
        }
        write_json(self._log_path(), data)

    def subscribe(self, callback: Subscriber) -> None:
        """Call `callback` with every event appended from now on."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def append(self, event: Event) -> Event:
        """
        Log an event and notify subscribers.

        If the log cannot be written the event is dropped, nobody is
        notified, and the write error propagates.
        """
        event.seq = len(self._events) + 1
        self._events.append(event)
        if self.store_dir:
            try:
                self._save()
            except Exception:
                self._events.pop()
                raise
        logger.debug(f"Event {event.seq}: {event.to_dict()}")

        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Event subscriber error: {e}")
        return event

    def truncate(self, length: int) -> None:
        """Drop every event after the first `length`. Subscribers are not told."""
        if length >= len(self._events):
            return
        dropped = len(self._events) - length
        del self._events[length:]
        if self.store_dir:
            self._save()
        logger.debug(f"Dropped {dropped} uncommitted events")

    def list(self) -> List[Event]:
        """All events in order."""
        return list(self._events)

    def since(self, seq: int) -> List[Event]:
        """Events with a sequence number greater than `seq`."""
        return [e for e in self._events if e.seq > seq]

    def find_by_asset(self, asset_id: int) -> List[Event]:
        return [e for e in self._events if e.asset() == asset_id]

    def find_by_identity(self, identity: str) -> List[Event]:
        return [e for e in self._events if identity in e.identities()]

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self):
        return iter(self._events)
