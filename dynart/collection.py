# dynart/collection.py
"""
Public collection surface.

QueryFacade answers "describe asset": it checks the registry first and then
regenerates the content from scratch:

    registry.exists -> derive_seeds -> compose -> assemble -> data reference

Collection is what a host exposes. The host supplies a CallContext per call
(who is calling, and where entropy comes from); state-changing calls go to
the registry, content queries go through the facade.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .config import CollectionConfig
from .entropy import EntropyInputs, EntropyProvider
from .errors import NotFound
from .identity import normalize_address
from .metadata import CanonicalRecord, assemble, to_data_uri
from .receivers import ReceiverRegistry
from .registry import Event, Registry
from .render import compose
from .seeds import derive_seeds

logger = logging.getLogger(__name__)


class QueryFacade:
    """Content queries over a registry."""

    def __init__(self, registry: Registry, config: Optional[CollectionConfig] = None):
        self.registry = registry
        self.config = config or CollectionConfig()

    def render(self, asset_id: int, entropy: EntropyInputs) -> CanonicalRecord:
        """
        Regenerate the canonical record of an asset.

        Raises:
            NotFound: If the asset does not exist (checked before any work)
        """
        if not self.registry.exists(asset_id):
            raise NotFound(asset_id)

        seed_a, seed_b = derive_seeds(asset_id, entropy)
        composition = compose(asset_id, seed_a, seed_b, background=self.config.background)
        logger.debug(
            f"Asset {asset_id}: {composition.circle_count} circles, "
            f"{composition.rect_count} rects, palette {composition.palette.joined()}"
        )
        return assemble(
            asset_id,
            composition.image,
            composition.circle_count,
            composition.rect_count,
            composition.palette,
            description=self.config.description,
            name_prefix=self.config.name_prefix,
        )

    def describe_asset(self, asset_id: int, entropy: EntropyInputs) -> str:
        """Self-describing JSON data reference for an asset."""
        return to_data_uri(self.render(asset_id, entropy))


@dataclass
class CallContext:
    """
    What the host supplies with each call.

    Attributes:
        caller: Identity making the call
        entropy: Source of entropy for content queries
    """
    caller: str
    entropy: Optional[EntropyProvider] = None

    def __post_init__(self):
        self.caller = normalize_address(self.caller)


class Collection:
    """
    A registry plus its generated content, as seen from outside.

    Usage:
        collection = Collection(entropy=ClockEntropyProvider(producer))
        ctx = CallContext(caller=alice)
        asset_id = collection.mint(ctx)
        uri = collection.token_uri(asset_id)
    """

    def __init__(
        self,
        registry: Optional[Registry] = None,
        config: Optional[CollectionConfig] = None,
        entropy: Optional[EntropyProvider] = None,
        receivers: Optional[ReceiverRegistry] = None,
    ):
        self.config = config or CollectionConfig()
        self.receivers = receivers or ReceiverRegistry()
        if registry is None:
            registry = Registry(
                store_dir=self.config.store_dir,
                recipient_check=self.receivers.check,
            )
        self.registry = registry
        self.entropy = entropy
        self.facade = QueryFacade(self.registry, self.config)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def symbol(self) -> str:
        return self.config.symbol

    @property
    def total_supply(self) -> int:
        return self.registry.total_supply

    # -- state-changing calls ----------------------------------------------

    def mint(self, ctx: CallContext) -> int:
        """Allocate a new asset to the caller."""
        return self.registry.allocate_and_assign(ctx.caller)

    def approve(self, ctx: CallContext, asset_id: int, spender: str) -> None:
        self.registry.approve(ctx.caller, asset_id, spender)

    def set_approval_for_all(self, ctx: CallContext, operator: str, approved: bool) -> None:
        self.registry.set_approval_for_all(ctx.caller, operator, approved)

    def transfer(self, ctx: CallContext, from_: str, to: str, asset_id: int) -> None:
        self.registry.transfer(ctx.caller, from_, to, asset_id)

    def safe_transfer(
        self,
        ctx: CallContext,
        from_: str,
        to: str,
        asset_id: int,
        data: bytes = b"",
    ) -> None:
        self.registry.safe_transfer(ctx.caller, from_, to, asset_id, data)

    # -- reads -------------------------------------------------------------

    def owner_of(self, asset_id: int) -> str:
        return self.registry.owner_of(asset_id)

    def balance_of(self, identity: str) -> int:
        return self.registry.balance_of(identity)

    def get_approved(self, asset_id: int) -> str:
        return self.registry.get_approved(asset_id)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return self.registry.is_approved_for_all(owner, operator)

    def assets_of(self, owner: str) -> List[int]:
        return self.registry.assets_of(owner)

    def events(self, asset_id: Optional[int] = None) -> List[Event]:
        if asset_id is None:
            return self.registry.events.list()
        return self.registry.events.find_by_asset(asset_id)

    def _entropy_for(self, ctx: Optional[CallContext]) -> EntropyInputs:
        provider = ctx.entropy if ctx is not None and ctx.entropy is not None else self.entropy
        if provider is None:
            raise ValueError("No entropy provider configured for content queries")
        return provider.current()

    def token_uri(self, asset_id: int, ctx: Optional[CallContext] = None) -> str:
        """
        Describe an asset with entropy taken from the call context
        (or the collection's default provider).

        Raises:
            NotFound: If the asset does not exist
        """
        # Checked here as well as in the facade so NotFound wins before any entropy is fetched
        if not self.registry.exists(asset_id):
            raise NotFound(asset_id)
        return self.facade.describe_asset(asset_id, self._entropy_for(ctx))

    def token_record(self, asset_id: int, ctx: Optional[CallContext] = None) -> CanonicalRecord:
        # NotFound before the entropy fetch, as in token_uri
        if not self.registry.exists(asset_id):
            raise NotFound(asset_id)
        return self.facade.render(asset_id, self._entropy_for(ctx))
