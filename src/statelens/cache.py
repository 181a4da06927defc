import copy
import hashlib
import json
import time
from typing import Any, Callable, Optional, Tuple

from cachetools import TLRUCache

from .address import address_key


def _expires_at(key: str, entry: Tuple[Any, float], now: float) -> float:
    return now + entry[1]


class ResponseCache:
    """
    Bounded in-memory cache whose entries expire after a per-entry TTL.

    Expired entries are dropped on every write, and the least recently used
    entry goes first once ``maxsize`` is reached. Values are deep-copied on the
    way in and out so callers never share state with the cache.
    """

    def __init__(
        self,
        default_ttl: float = 300,
        maxsize: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = default_ttl
        self._entries: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_expires_at, timer=clock)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return copy.deepcopy(entry[0])

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        lifetime = self.default_ttl if ttl is None else ttl
        self._entries[key] = (copy.deepcopy(value), lifetime)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()


def storage_key(address: str, block_number: Optional[int] = None) -> str:
    block = "latest" if block_number is None else str(block_number)
    return f"storage:{address_key(address)}:{block}"


def custom_storage_key(address: str, block_number: Optional[int], abi: Any, layout: Any) -> str:
    """Storage key scoped to a caller-supplied ABI/layout pair."""
    payload = json.dumps({"abi": abi, "layout": layout}, sort_keys=True, default=str)
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]
    return f"{storage_key(address, block_number)}:custom:{digest}"


def abi_key(address: str) -> str:
    return f"abi:{address_key(address)}"


def proxy_key(address: str) -> str:
    return f"proxy:{address_key(address)}"
