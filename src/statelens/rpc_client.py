import asyncio
import itertools
import logging
from typing import Any, Dict, List, Optional

import requests

from .decoder import SlotKey, normalize_word, slot_to_int
from .errors import RpcConnectionError, RpcRequestError

logger = logging.getLogger(__name__)


def block_tag(block_number: Optional[int]) -> str:
    if block_number is None:
        return "latest"
    if isinstance(block_number, bool) or not isinstance(block_number, int) or block_number < 0:
        raise ValueError("block_number must be a non-negative integer.")
    return hex(block_number)


class RpcClient:
    """Minimal JSON-RPC 2.0 client for EVM nodes (HTTP POST). Never retries."""

    def __init__(
        self,
        rpc_url: str,
        timeout: int = 10,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        url = (rpc_url or "").strip()
        if not url:
            raise ValueError("rpc_url must be a non-empty string.")

        self.rpc_url = url
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if headers:
            self.session.headers.update(dict(headers))
        self._ids = itertools.count(1)

    def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        if not isinstance(method, str) or not method.strip():
            raise ValueError("method must be a non-empty string.")
        if params is None:
            params = []
        if not isinstance(params, list):
            raise ValueError("params must be a list.")

        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }

        try:
            response = self.session.post(
                self.rpc_url,
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise RpcConnectionError(f"RPC transport failure during {method}: {exc}") from exc

        if response.status_code == 429 or response.status_code >= 500:
            raise RpcConnectionError(
                f"RPC node unavailable during {method}: HTTP {response.status_code}."
            )
        if response.status_code >= 400:
            raise RpcRequestError(
                f"RPC node rejected {method}: HTTP {response.status_code}.",
                code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise RpcRequestError(f"Unexpected JSON-RPC response to {method} (not JSON).") from exc
        if not isinstance(data, dict):
            raise RpcRequestError(f"Unexpected JSON-RPC response to {method} (non-object).")

        error_obj = data.get("error")
        if isinstance(error_obj, dict):
            code = error_obj.get("code")
            message = error_obj.get("message")
            err_data = error_obj.get("data")
            parts: List[str] = []
            if code is not None:
                parts.append(f"code {code}")
            if message:
                parts.append(str(message))
            if err_data:
                parts.append(str(err_data))
            detail = ": ".join(parts) if parts else "unknown error"
            raise RpcRequestError(f"RPC error: {detail}.", code=code if isinstance(code, int) else None)

        if "result" not in data:
            raise RpcRequestError(f"Unexpected JSON-RPC response to {method} (missing result).")
        return data.get("result")


class ChainClient:
    """
    Async facade over ``RpcClient`` exposing the reads the storage engine needs.

    Each call runs the blocking HTTP request on a worker thread, so many reads
    can be in flight at once from a single event loop.
    """

    def __init__(self, rpc: RpcClient) -> None:
        self.rpc = rpc

    async def _call(self, method: str, params: List[Any]) -> Any:
        return await asyncio.to_thread(self.rpc.call, method, params)

    async def read_word(
        self,
        address: str,
        slot: SlotKey,
        block_number: Optional[int] = None,
    ) -> str:
        position = hex(slot_to_int(slot))
        result = await self._call(
            "eth_getStorageAt", [address, position, block_tag(block_number)]
        )
        if result is not None and not isinstance(result, str):
            raise RpcRequestError("eth_getStorageAt returned a non-string result.")
        try:
            return normalize_word(result)
        except ValueError as exc:
            raise RpcRequestError(f"eth_getStorageAt returned malformed word: {result}.") from exc

    async def read_code(self, address: str, block_number: Optional[int] = None) -> str:
        result = await self._call("eth_getCode", [address, block_tag(block_number)])
        if not result:
            return "0x"
        if not isinstance(result, str) or not result.startswith("0x"):
            raise RpcRequestError("eth_getCode returned unexpected result.")
        return result

    async def is_contract(self, address: str, block_number: Optional[int] = None) -> bool:
        code = await self.read_code(address, block_number)
        return len(code) > 2

    async def block_height(self) -> int:
        result = await self._call("eth_blockNumber", [])
        if not isinstance(result, str) or not result.startswith("0x"):
            raise RpcRequestError("eth_blockNumber returned unexpected result.")
        return int(result, 16)
