import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .decoder import WORD_SIZE

_STORAGE_SUFFIX_RE = re.compile(r"_(storage|memory|calldata)(_ptr)?$")


@dataclass(frozen=True)
class LayoutEntry:
    label: str
    type: str
    slot: int
    offset: int = 0
    size: int = WORD_SIZE


@dataclass
class StorageLayout:
    storage: List[LayoutEntry]
    types: Dict[str, Any]


def resolve_type_label(type_id: str, types: Dict[str, Any]) -> str:
    """Turn a compiler type id like ``t_uint256`` into a Solidity type name."""
    info = types.get(type_id) if isinstance(types, dict) else None
    if isinstance(info, dict) and info.get("label"):
        return str(info["label"])
    if not type_id.startswith("t_"):
        return type_id
    name = _STORAGE_SUFFIX_RE.sub("", type_id[2:])
    if name.startswith("contract(") or name.startswith("address_payable"):
        return "address"
    return name


def _as_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return default


def parse_storage_layout(raw: Any) -> Optional[StorageLayout]:
    """
    Accept compiler output holding a ``storageLayout`` key, or the bare
    ``{"storage": [...], "types": {...}}`` object. Malformed entries are skipped.
    """
    if not isinstance(raw, dict):
        return None
    layout = raw.get("storageLayout", raw)
    if not isinstance(layout, dict) or not isinstance(layout.get("storage"), list):
        return None

    types = layout.get("types") or {}
    if not isinstance(types, dict):
        types = {}

    entries: List[LayoutEntry] = []
    for item in layout["storage"]:
        if not isinstance(item, dict):
            continue
        label = item.get("label")
        type_id = item.get("type")
        slot = _as_int(item.get("slot"))
        if not label or not isinstance(type_id, str) or slot is None or slot < 0:
            continue

        type_info = types.get(type_id) if isinstance(types.get(type_id), dict) else {}
        size = _as_int(item.get("size"), _as_int(type_info.get("numberOfBytes"), WORD_SIZE))
        offset = _as_int(item.get("offset"), 0)
        entries.append(
            LayoutEntry(
                label=str(label),
                type=resolve_type_label(type_id, types),
                slot=slot,
                offset=offset or 0,
                size=size or WORD_SIZE,
            )
        )

    return StorageLayout(storage=entries, types=types)


def get_variable_slot(layout: StorageLayout, label: str) -> Optional[int]:
    for entry in layout.storage:
        if entry.label == label:
            return entry.slot
    return None


def map_layout_by_label(layout: StorageLayout) -> Dict[str, LayoutEntry]:
    return {entry.label: entry for entry in layout.storage}
