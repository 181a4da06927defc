"""
Ways of turning crawled storage words into named variables.

Exactly one strategy runs per analysis, picked by what the caller supplied:
a storage layout beats an ABI, and an ABI beats nothing.
"""

import logging
from typing import List, Mapping, Sequence

from .abi import VariableHint
from .decoder import WORD_SIZE, canonical_type, decode_auto, decode_hinted, extract_packed, format_value
from .layout import StorageLayout
from .models import VariableEntry

logger = logging.getLogger(__name__)


class VariableStrategy:
    name = "base"

    def build(self, words: Mapping[int, str]) -> List[VariableEntry]:
        raise NotImplementedError


class LayoutStrategy(VariableStrategy):
    """Decode each declared variable from its slot, offset and size."""

    name = "layout"

    def __init__(self, layout: StorageLayout) -> None:
        self.layout = layout

    def build(self, words: Mapping[int, str]) -> List[VariableEntry]:
        variables: List[VariableEntry] = []
        for entry in self.layout.storage:
            raw = words.get(entry.slot)
            if raw is None:
                # Declared beyond the crawl ceiling.
                continue

            word = raw
            if entry.size < WORD_SIZE:
                try:
                    signed = canonical_type(entry.type).startswith("int")
                    word = extract_packed(raw, entry.offset, entry.size, signed=signed)
                except ValueError as exc:
                    logger.warning("Skipping packed range of %s: %s", entry.label, exc)

            value = decode_hinted(entry.type, word)
            variables.append(
                VariableEntry(
                    name=entry.label,
                    type=entry.type,
                    value=format_value(entry.type, value),
                    slot=entry.slot,
                )
            )
        return variables


class AbiHintStrategy(VariableStrategy):
    """
    Best-effort placement of ABI hints: hint ``i`` is read from slot ``i``.

    ABI hints carry no slot information, so this alignment is a placeholder
    rather than a real mapping.
    """

    name = "abi-hints"

    def __init__(self, hints: Sequence[VariableHint]) -> None:
        self.hints = list(hints)

    def build(self, words: Mapping[int, str]) -> List[VariableEntry]:
        variables: List[VariableEntry] = []
        for index, hint in enumerate(self.hints):
            raw = words.get(index)
            if raw is None:
                continue
            value = decode_hinted(hint.type, raw)
            variables.append(
                VariableEntry(
                    name=hint.name,
                    type=hint.type,
                    value=format_value(hint.type, value),
                    slot=index,
                )
            )
        return variables


class HeuristicStrategy(VariableStrategy):
    """Surface every non-empty slot as ``slot_<n>`` with an auto-detected type."""

    name = "heuristic"

    def build(self, words: Mapping[int, str]) -> List[VariableEntry]:
        variables: List[VariableEntry] = []
        for slot in sorted(words):
            decoded = decode_auto(words[slot])
            if decoded.value is None:
                continue
            variables.append(
                VariableEntry(
                    name=f"slot_{slot}",
                    type=decoded.type,
                    value=format_value(decoded.type, decoded.value),
                    slot=slot,
                )
            )
        return variables
