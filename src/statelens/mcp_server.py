"""
MCP server exposing contract storage inspection.
"""

import argparse
import logging
import sys
from collections.abc import Mapping
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from .config import load_config
from .service import StorageService

server = FastMCP(
    name="statelens",
    instructions="Read and decode EVM contract storage: raw slots, proxy detection and best-effort variable view.",
)

_service: Optional[StorageService] = None


def _get_service() -> StorageService:
    global _service
    if _service is None:
        cfg = load_config()
        logging.basicConfig(level=cfg.log_level, stream=sys.stderr)
        _service = StorageService(cfg)
    return _service


def _normalize_array_param(value: Optional[Any], name: str) -> Optional[list]:
    """
    Ensure a parameter intended as an array is actually treated as one:
    - str/bytes: likely misuse, raise with guidance
    - list/tuple: keep as list
    - Mapping: reject (not an array)
    - other scalars: auto-wrap into single-element list
    """
    if value is None:
        return None
    if isinstance(value, (str, bytes, bytearray)):
        raise ValueError(f"{name} must be an array (e.g. [0, 1, '0x2']); got a string/bytes.")
    if isinstance(value, Mapping):
        raise ValueError(f"{name} must be an array, not an object/map.")
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


@server.tool(
    name="analyze_storage",
    title="Analyze Contract Storage",
    description="Crawl slots 0..max_slots of a contract and decode them. Optional abi (array) or storage_layout (solc storageLayout object) improve the variable view.",
)
async def analyze_storage(
    address: str,
    abi: Optional[Any] = None,
    storage_layout: Optional[Any] = None,
    max_slots: Optional[int] = None,
    block_number: Optional[int] = None,
) -> dict:
    svc = _get_service()
    return await svc.analyze_storage(address, abi, storage_layout, max_slots, block_number)


@server.tool(
    name="read_storage_slots",
    title="Read Storage Slots",
    description="Read and auto-decode specific storage slots (at most 100). `slots` must be an array.",
)
async def read_storage_slots(
    address: str,
    slots: Any,
    block_number: Optional[int] = None,
) -> dict:
    svc = _get_service()
    normalized_slots = _normalize_array_param(slots, "slots") or []
    return await svc.read_slots(address, normalized_slots, block_number)


@server.tool(
    name="detect_proxy",
    title="Detect Proxy Implementation/Admin",
    description="Detect proxy implementation/admin via EIP-1967 storage slots.",
)
async def detect_proxy(address: str, block_number: Optional[int] = None) -> dict:
    svc = _get_service()
    return await svc.detect_proxy(address, block_number)


@server.tool(
    name="derive_slot",
    title="Derive Mapping/Array Slot",
    description="Compute the storage slot of a mapping entry (keys + key_types arrays) or dynamic array element (index).",
)
def derive_slot(
    base_slot: Any,
    keys: Optional[Any] = None,
    key_types: Optional[Any] = None,
    index: Optional[int] = None,
) -> dict:
    return StorageService.derive_slot(
        base_slot,
        _normalize_array_param(keys, "keys"),
        _normalize_array_param(key_types, "key_types"),
        index,
    )


@server.tool(
    name="health",
    title="RPC Health Check",
    description="Report whether the configured RPC node answers eth_blockNumber.",
)
async def health() -> dict:
    svc = _get_service()
    return await svc.health()


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the StateLens MCP server.")
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default="stdio",
        help="Transport protocol for MCP.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host for SSE/HTTP transports.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for SSE/HTTP transports.",
    )
    parser.add_argument(
        "--mount-path",
        default="/",
        help="Mount path for SSE transport (only when transport=sse).",
    )
    args = parser.parse_args()

    # FastMCP uses host/port only for SSE/HTTP transports; stdio ignores them.
    server.settings.host = args.host
    server.settings.port = args.port

    if args.transport == "sse":
        server.run(transport="sse", mount_path=args.mount_path)
    else:
        server.run(transport=args.transport)


if __name__ == "__main__":
    main()
