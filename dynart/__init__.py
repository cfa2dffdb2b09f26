# dynart - Asset registry with deterministically generated content
#
# Assets are tracked in a registry (ownership, balances, approvals). Their
# display content is never stored: every query regenerates it from the asset
# identifier and host-supplied entropy.
#
# Core concepts:
# - Registry: Asset existence, ownership and approval state
# - EntropyProvider: Host capability supplying time/hash/producer/difficulty
# - derive_seeds / compose / assemble: Seeds -> SVG image -> canonical record
# - Collection: The public surface combining the registry and content queries

from .errors import (
    RegistryError,
    NotFound,
    Unauthorized,
    InvalidRecipient,
    InvalidOwner,
    AlreadyExists,
    UnsafeRecipient,
)
from .identity import NULL_ADDRESS, Account, normalize_address, is_null
from .entropy import EntropyInputs, EntropyProvider, FixedEntropyProvider, ClockEntropyProvider
from .seeds import derive_seeds
from .render import compose, Composition, Palette, ImageDescription
from .metadata import CanonicalRecord, assemble, to_data_uri
from .registry import Registry, Asset, EventLog
from .receivers import ReceiverRegistry
from .config import CollectionConfig
from .collection import Collection, CallContext, QueryFacade

__all__ = [
    # Errors
    "RegistryError",
    "NotFound",
    "Unauthorized",
    "InvalidRecipient",
    "InvalidOwner",
    "AlreadyExists",
    "UnsafeRecipient",
    # Identity
    "NULL_ADDRESS",
    "Account",
    "normalize_address",
    "is_null",
    # Content
    "EntropyInputs",
    "EntropyProvider",
    "FixedEntropyProvider",
    "ClockEntropyProvider",
    "derive_seeds",
    "compose",
    "Composition",
    "Palette",
    "ImageDescription",
    "CanonicalRecord",
    "assemble",
    "to_data_uri",
    # Registry
    "Registry",
    "Asset",
    "EventLog",
    "ReceiverRegistry",
    # Surface
    "CollectionConfig",
    "Collection",
    "CallContext",
    "QueryFacade",
]

__version__ = "0.1.0"
