import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Optional

from .config import load_config
from .errors import StateLensError
from .service import StorageService


def _load_json_file(path: Optional[str]) -> Any:
    if not path:
        return None
    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect and decode the storage of an EVM contract.",
        allow_abbrev=False,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser("analyze", help="Crawl storage and decode variables")
    analyze_parser.add_argument(
        "--address",
        required=True,
        help="Contract address (0x-prefixed).",
    )
    analyze_parser.add_argument(
        "--abi",
        required=False,
        help="Path to a JSON file holding the contract ABI.",
    )
    analyze_parser.add_argument(
        "--layout",
        required=False,
        help="Path to a JSON file holding solc storageLayout output.",
    )
    analyze_parser.add_argument(
        "--max-slots",
        required=False,
        type=int,
        help="Number of slots to crawl from 0 (default MAX_STORAGE_SLOTS, at most 1000).",
    )
    analyze_parser.add_argument(
        "--block",
        required=False,
        type=int,
        help="Optional block number to pin storage reads to.",
    )

    slots_parser = subparsers.add_parser("slots", help="Read specific storage slots")
    slots_parser.add_argument(
        "--address",
        required=True,
        help="Contract address (0x-prefixed).",
    )
    slots_parser.add_argument(
        "--slot",
        required=True,
        action="append",
        help="Slot index (decimal or 0x-hex). Repeat for several slots, at most 100.",
    )
    slots_parser.add_argument(
        "--block",
        required=False,
        type=int,
        help="Optional block number to pin storage reads to.",
    )

    proxy_parser = subparsers.add_parser("proxy", help="Detect EIP-1967 proxy implementation/admin")
    proxy_parser.add_argument(
        "--address",
        required=True,
        help="Contract address (0x-prefixed).",
    )

    derive_parser = subparsers.add_parser("derive-slot", help="Compute a mapping or array element slot")
    derive_parser.add_argument(
        "--base-slot",
        required=True,
        help="Slot the mapping/array is declared at.",
    )
    derive_parser.add_argument(
        "--key",
        action="append",
        help="Mapping key; repeat for nested mappings.",
    )
    derive_parser.add_argument(
        "--key-type",
        action="append",
        help="Solidity type of each key (address, uint256, bytes32, string, ...).",
    )
    derive_parser.add_argument(
        "--index",
        required=False,
        type=int,
        help="Dynamic array element index.",
    )

    subparsers.add_parser("health", help="Check RPC connectivity")

    return parser


async def _run(service: StorageService, args: argparse.Namespace) -> Any:
    if args.command == "analyze":
        return await service.analyze_storage(
            args.address,
            abi=_load_json_file(args.abi),
            layout=_load_json_file(args.layout),
            max_slots=args.max_slots,
            block_number=args.block,
        )
    if args.command == "slots":
        return await service.read_slots(args.address, args.slot, block_number=args.block)
    if args.command == "proxy":
        return await service.detect_proxy(args.address)
    if args.command == "health":
        return await service.health()
    raise ValueError(f"Unknown command '{args.command}'.")


def main(argv: Optional[list] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "derive-slot":
            result = StorageService.derive_slot(args.base_slot, args.key, args.key_type, args.index)
            print(json.dumps(result, indent=2))
            return

        config = load_config()
        logging.basicConfig(
            level=config.log_level,
            stream=sys.stderr,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        service = StorageService(config)
        result = asyncio.run(_run(service, args))
        print(json.dumps(result, indent=2))
    except (StateLensError, ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
