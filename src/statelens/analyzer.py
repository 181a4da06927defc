import logging
from typing import Any, List, Optional, Sequence

from .abi import AbiResolver, extract_state_variable_hints
from .address import normalize_address
from .batcher import SlotBatcher
from .decoder import SlotKey
from .errors import NotAContractError, RpcConnectionError
from .layout import parse_storage_layout
from .models import DecodedSlot, StorageReport
from .proxy import ProxyResolver
from .rpc_client import ChainClient
from .strategies import AbiHintStrategy, HeuristicStrategy, LayoutStrategy, VariableStrategy

logger = logging.getLogger(__name__)


class StorageAnalyzer:
    """
    End-to-end storage analysis of one contract.

    Stages run in order: existence check, proxy detection, ABI resolution,
    slot crawl, variable reconstruction. Only the existence check can fail the
    request; later stages degrade to empty results.
    """

    def __init__(
        self,
        chain: ChainClient,
        batcher: SlotBatcher,
        proxy_resolver: ProxyResolver,
        abi_resolver: AbiResolver,
        max_slots: int = 500,
    ) -> None:
        self.chain = chain
        self.batcher = batcher
        self.proxy_resolver = proxy_resolver
        self.abi_resolver = abi_resolver
        self.max_slots = max_slots

    async def ensure_contract(self, address: str, block_number: Optional[int] = None) -> None:
        try:
            is_contract = await self.chain.is_contract(address, block_number)
        except RpcConnectionError as exc:
            raise RpcConnectionError(
                "Unable to connect to RPC node. "
                "Please check your network connection and RPC_URL configuration."
            ) from exc
        if not is_contract:
            raise NotAContractError(address)

    def select_strategy(self, layout: Any, abi: Optional[list]) -> VariableStrategy:
        parsed = parse_storage_layout(layout) if layout is not None else None
        if parsed is not None:
            return LayoutStrategy(parsed)
        if layout is not None:
            logger.warning("Ignoring storage layout without a 'storage' list")
        if abi is not None:
            return AbiHintStrategy(extract_state_variable_hints(abi))
        return HeuristicStrategy()

    async def analyze(
        self,
        address: str,
        abi: Any = None,
        layout: Any = None,
        max_slots: Optional[int] = None,
        block_number: Optional[int] = None,
    ) -> StorageReport:
        normalized = normalize_address(address)
        slot_count = self.max_slots if max_slots is None else max_slots

        await self.ensure_contract(normalized, block_number)

        proxy = await self.proxy_resolver.detect(normalized, block_number)
        # Types live on the implementation; storage stays on the proxy.
        logic_address = normalized
        if proxy.is_proxy and proxy.implementation_address:
            logic_address = proxy.implementation_address

        resolved_abi, abi_source = await self.abi_resolver.resolve(logic_address, abi)

        words = await self.batcher.crawl(normalized, slot_count, block_number)
        slot_view = [DecodedSlot.from_word(slot, words[slot]) for slot in sorted(words)]

        strategy = self.select_strategy(layout, resolved_abi)
        variable_view = strategy.build(words)
        logger.info(
            "Analyzed %s: %d slots, %d variables via %s strategy",
            normalized,
            len(slot_view),
            len(variable_view),
            strategy.name,
        )

        return StorageReport(
            address=normalized,
            proxy=proxy,
            slot_view=slot_view,
            variable_view=variable_view,
            abi_source=abi_source,
            block_number=block_number,
        )

    async def read_slots(
        self,
        address: str,
        slots: Sequence[SlotKey],
        block_number: Optional[int] = None,
    ) -> List[DecodedSlot]:
        normalized = normalize_address(address)
        words = await self.batcher.read_words(normalized, slots, block_number)
        return [DecodedSlot.from_word(slot, words[slot]) for slot in dict.fromkeys(slots)]
