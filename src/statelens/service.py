import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from .abi import AbiResolver
from .address import normalize_address
from .analyzer import StorageAnalyzer
from .batcher import SlotBatcher
from .cache import ResponseCache, custom_storage_key, proxy_key, storage_key
from .config import MAX_EXPLICIT_SLOTS, MAX_SLOTS_LIMIT, Config
from .decoder import derive_array_slot, derive_mapping_slot, derive_nested_mapping_slot, slot_to_int
from .errors import StateLensError
from .explorer_client import ExplorerClient
from .proxy import ProxyResolver
from .rpc_client import ChainClient, RpcClient

logger = logging.getLogger(__name__)


class StorageService:
    """Combine configuration, cache, and the analysis engine behind request-shaped methods."""

    def __init__(self, config: Config, rpc: Optional[RpcClient] = None, explorer: Optional[ExplorerClient] = None) -> None:
        self.config = config
        self.cache = ResponseCache(default_ttl=config.cache_ttl_seconds, maxsize=config.cache_max_entries)

        self.rpc = rpc or RpcClient(config.rpc_url, timeout=config.request_timeout)
        if explorer is None and config.explorer_api_url:
            explorer = ExplorerClient(
                base_url=config.explorer_api_url,
                api_key=config.explorer_api_key,
                timeout=config.request_timeout,
                max_retries=config.explorer_max_retries,
                backoff_seconds=config.explorer_backoff_seconds,
            )

        self.chain = ChainClient(self.rpc)
        self.batcher = SlotBatcher(
            self.chain,
            batch_size=config.batch_size,
            delay_seconds=config.batch_delay_seconds,
        )
        self.proxy_resolver = ProxyResolver(self.chain)
        self.analyzer = StorageAnalyzer(
            chain=self.chain,
            batcher=self.batcher,
            proxy_resolver=self.proxy_resolver,
            abi_resolver=AbiResolver(explorer, cache=self.cache),
            max_slots=config.max_storage_slots,
        )

    async def analyze_storage(
        self,
        address: str,
        abi: Any = None,
        layout: Any = None,
        max_slots: Optional[int] = None,
        block_number: Optional[int] = None,
    ) -> Dict[str, Any]:
        normalized = normalize_address(address)
        slot_count = self._normalize_max_slots(max_slots)
        custom = abi is not None or layout is not None
        if custom:
            key = custom_storage_key(normalized, block_number, abi, layout)
        else:
            key = storage_key(normalized, block_number)
        # The cache only holds default-sized crawls.
        cacheable = slot_count == self.config.max_storage_slots

        if cacheable:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Cache hit for %s", key)
                return cached

        report = await self.analyzer.analyze(
            normalized,
            abi=abi,
            layout=layout,
            max_slots=slot_count,
            block_number=block_number,
        )
        result = report.to_dict()

        if cacheable:
            ttl = self.config.provided_cache_ttl_seconds if custom else self.config.cache_ttl_seconds
            self.cache.set(key, result, ttl)
        return result

    async def read_slots(
        self,
        address: str,
        slots: Sequence[Any],
        block_number: Optional[int] = None,
    ) -> Dict[str, Any]:
        normalized = normalize_address(address)
        slot_list = self._normalize_slots(slots)
        decoded = await self.analyzer.read_slots(normalized, slot_list, block_number)
        return {
            "address": normalized,
            "block_number": block_number,
            "slots": [item.to_dict() for item in decoded],
        }

    async def detect_proxy(self, address: str, block_number: Optional[int] = None) -> Dict[str, Any]:
        normalized = normalize_address(address)
        # Only latest-block answers are cached.
        key = proxy_key(normalized) if block_number is None else None
        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached
        info = await self.proxy_resolver.detect(normalized, block_number)
        result = {"address": normalized, **info.to_dict()}
        if key is not None:
            self.cache.set(key, result)
        return result

    async def health(self) -> Dict[str, Any]:
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            block_number = await self.chain.block_height()
        except StateLensError as exc:
            return {"status": "unhealthy", "timestamp": timestamp, "error": str(exc)}
        return {"status": "healthy", "timestamp": timestamp, "block_number": block_number}

    @staticmethod
    def derive_slot(
        base_slot: Any,
        keys: Optional[Sequence[Any]] = None,
        key_types: Optional[Sequence[str]] = None,
        index: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Mapping entry slot when ``keys`` are given, array element slot when ``index`` is."""
        if keys and index is not None:
            raise ValueError("Provide either keys (mapping) or index (array), not both.")
        if keys:
            types = list(key_types or [])
            if len(types) == 1 and len(keys) > 1:
                types = types * len(keys)
            if len(keys) == 1:
                derived = derive_mapping_slot(base_slot, keys[0], types[0] if types else "bytes32")
            else:
                derived = derive_nested_mapping_slot(base_slot, list(keys), types)
            return {"base_slot": slot_to_int(base_slot), "kind": "mapping", "slot": derived}
        if index is not None:
            derived = derive_array_slot(base_slot, index)
            return {"base_slot": slot_to_int(base_slot), "kind": "array", "slot": derived}
        raise ValueError("Either keys (mapping) or index (array) is required.")

    def _normalize_max_slots(self, max_slots: Optional[Any]) -> int:
        if max_slots is None:
            return self.config.max_storage_slots
        if isinstance(max_slots, bool):
            raise ValueError("max_slots must be a positive integer.")
        try:
            value = int(max_slots)
        except (TypeError, ValueError) as exc:
            raise ValueError("max_slots must be a positive integer.") from exc
        if value <= 0 or value > MAX_SLOTS_LIMIT:
            raise ValueError(f"max_slots must be between 1 and {MAX_SLOTS_LIMIT}.")
        return value

    def _normalize_slots(self, slots: Sequence[Any]) -> List[int]:
        if isinstance(slots, (str, bytes)) or not isinstance(slots, (list, tuple)):
            raise ValueError("slots must be a list of non-negative integers.")
        if len(slots) > MAX_EXPLICIT_SLOTS:
            raise ValueError(f"At most {MAX_EXPLICIT_SLOTS} slots may be requested at once.")
        return [slot_to_int(slot) for slot in slots]
