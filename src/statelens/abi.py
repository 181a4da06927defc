"""
Where a contract's ABI comes from, and what can be guessed from it.

An ABI is trusted from exactly one source, in priority order: the caller
(``provided``), then the block explorer (``explorer``). The ``local`` tag is
reserved and never produced here.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

import requests

from .cache import ResponseCache, abi_key
from .explorer_client import ExplorerClient
from .models import ABI_SOURCE_EXPLORER, ABI_SOURCE_PROVIDED

logger = logging.getLogger(__name__)

ABI_ENTRY_KINDS = {"function", "event", "constructor", "fallback", "receive"}

Abi = List[Dict[str, Any]]


class VariableHint(NamedTuple):
    name: str
    type: str


def _maybe_json(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return None
    return value


def validate_abi(abi: Any) -> Optional[Abi]:
    """Return ``abi`` if it is a list holding at least one recognised entry kind."""
    candidate = _maybe_json(abi)
    if not isinstance(candidate, list):
        return None
    has_valid_entry = any(
        isinstance(item, dict) and item.get("type") in ABI_ENTRY_KINDS for item in candidate
    )
    return candidate if has_valid_entry else None


def parse_explorer_abi(payload: Any) -> Optional[Abi]:
    """
    Pull the ABI out of a ``getabi`` response.

    ``result`` is usually a JSON string holding the ABI array, but some
    explorers return the array itself.
    """
    if not isinstance(payload, dict):
        return None
    if str(payload.get("status")) != "1" or not payload.get("result"):
        return None
    result = _maybe_json(payload["result"])
    # Double-encoded payloads decode to a string on the first pass.
    if isinstance(result, str):
        result = _maybe_json(result)
    return result if isinstance(result, list) else None


def extract_state_variable_hints(abi: Abi) -> List[VariableHint]:
    """
    Best-effort guesses at state variables.

    An ABI does not list state variables, so this collects indexed event
    parameters (named ``<Event>_<param>``) followed by single-output functions,
    which are usually public getters.
    """
    hints: List[VariableHint] = []

    for event in abi:
        if not isinstance(event, dict) or event.get("type") != "event":
            continue
        for param in event.get("inputs") or []:
            if isinstance(param, dict) and param.get("indexed"):
                hints.append(
                    VariableHint(f"{event.get('name', '')}_{param.get('name', '')}", param.get("type", ""))
                )

    for func in abi:
        if not isinstance(func, dict) or func.get("type") != "function":
            continue
        outputs = func.get("outputs") or []
        if len(outputs) == 1 and isinstance(outputs[0], dict):
            hints.append(VariableHint(func.get("name") or "unknown", outputs[0].get("type", "")))

    return hints


class AbiResolver:
    def __init__(self, explorer: Optional[ExplorerClient] = None, cache: Optional[ResponseCache] = None) -> None:
        self.explorer = explorer
        self.cache = cache

    async def fetch_from_explorer(self, address: str) -> Optional[Abi]:
        if self.explorer is None:
            return None
        if self.cache is not None:
            cached = self.cache.get(abi_key(address))
            if cached is not None:
                return cached
        try:
            payload = await asyncio.to_thread(self.explorer.get_abi, address)
        except (requests.RequestException, ValueError) as exc:
            logger.error("Failed to fetch ABI for %s from explorer: %s", address, exc)
            return None
        abi = parse_explorer_abi(payload)
        if abi is None:
            logger.info("Explorer has no ABI for %s", address)
        elif self.cache is not None:
            self.cache.set(abi_key(address), abi)
        return abi

    async def resolve(
        self,
        address: str,
        provided_abi: Any = None,
    ) -> Tuple[Optional[Abi], Optional[str]]:
        if provided_abi is not None:
            abi = validate_abi(provided_abi)
            if abi is not None:
                return abi, ABI_SOURCE_PROVIDED
            logger.warning("Ignoring provided ABI for %s: no function/event entries", address)

        abi = await self.fetch_from_explorer(address)
        if abi is not None:
            return abi, ABI_SOURCE_EXPLORER
        return None, None
