"""
Decoding of raw 32-byte storage words.

Two entry points turn a word into a value:

- ``decode_hinted`` when the caller knows the Solidity type (from a storage
  layout or an ABI hint);
- ``decode_auto`` when nothing is known, walking ``AUTO_CLASSIFIERS`` in order
  and taking the first shape that matches.

The module also derives storage keys for mapping entries and dynamic array
elements. Everything here is pure: no I/O, no shared state.
"""

import re
from typing import Any, Callable, NamedTuple, Optional, Sequence, Tuple, Union

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

WORD_SIZE = 32
ZERO_WORD = "0x" + "00" * WORD_SIZE

UINT256_MODULUS = 1 << 256
MAX_INT256 = (1 << 255) - 1

# Smallest 20-byte value still treated as an address by auto-detection.
# Anything below lies in the range of ordinary counters and token amounts.
MIN_PLAUSIBLE_ADDRESS = 1 << 96

SlotKey = Union[int, str]

_UINT_RE = re.compile(r"^uint(\d*)$")
_INT_RE = re.compile(r"^int(\d*)$")
_BYTES_RE = re.compile(r"^bytes(\d*)$")


class Decoded(NamedTuple):
    type: str
    value: Any


class SlotClassifier(NamedTuple):
    type_name: str
    matches: Callable[[bytes], bool]
    decode: Callable[[bytes], Any]


def normalize_word(raw: Optional[Union[str, bytes]]) -> str:
    """Return ``raw`` as a 0x-prefixed, lowercase, zero-padded 64-hex-digit word."""
    if raw is None:
        return ZERO_WORD
    if isinstance(raw, (bytes, bytearray)):
        body = bytes(raw).hex()
    else:
        body = raw.strip().lower()
        if body.startswith("0x"):
            body = body[2:]
    if not body:
        return ZERO_WORD
    if len(body) > WORD_SIZE * 2:
        raise ValueError(f"Storage word longer than {WORD_SIZE} bytes: 0x{body}.")
    try:
        int(body, 16)
    except ValueError as exc:
        raise ValueError(f"Storage word must be hex, got '{raw}'.") from exc
    return "0x" + body.rjust(WORD_SIZE * 2, "0")


def word_to_bytes(word: Union[str, bytes]) -> bytes:
    return bytes.fromhex(normalize_word(word)[2:])


def int_to_word(value: int) -> str:
    """Encode an integer as a word, using two's complement for negatives."""
    if value < -(1 << 255) or value >= UINT256_MODULUS:
        raise ValueError(f"Value {value} does not fit in 32 bytes.")
    return "0x" + format(value % UINT256_MODULUS, "064x")


def is_zero_word(word: Union[str, bytes, None]) -> bool:
    return normalize_word(word) == ZERO_WORD


def slot_to_int(slot: SlotKey) -> int:
    """Accept an integer slot, a decimal string, or a 0x-prefixed hex key."""
    if isinstance(slot, bool):
        raise ValueError("Slot must be an integer or hex string, not a boolean.")
    if isinstance(slot, int):
        value = slot
    elif isinstance(slot, str):
        text = slot.strip().lower()
        try:
            value = int(text, 16) if text.startswith("0x") else int(text, 10)
        except ValueError as exc:
            raise ValueError(f"Invalid storage slot '{slot}'.") from exc
    else:
        raise ValueError("Slot must be an integer or hex string.")
    if value < 0 or value >= UINT256_MODULUS:
        raise ValueError(f"Storage slot {slot} is out of range.")
    return value


def extract_packed(word: str, offset: int, size: int, signed: bool = False) -> str:
    """
    Cut a packed value out of a word.

    Solidity packs small variables right-to-left: the value at byte ``offset``
    occupies bytes ``[32 - offset - size, 32 - offset)`` of the big-endian
    word. The slice is widened back to a full word, sign-extended when
    ``signed`` so that ``decode_hinted("intN", ...)`` sees the true value.
    """
    if offset < 0 or size <= 0 or offset + size > WORD_SIZE:
        raise ValueError(f"Packed range offset={offset} size={size} exceeds a storage word.")
    data = word_to_bytes(word)
    chunk = data[WORD_SIZE - offset - size:WORD_SIZE - offset]
    value = int.from_bytes(chunk, "big")
    if signed and chunk and chunk[0] & 0x80:
        value -= 1 << (8 * size)
    return int_to_word(value)


def canonical_type(type_name: str) -> str:
    """Map aliases onto the names the decoder dispatches on."""
    name = (type_name or "").strip()
    if name == "uint":
        return "uint256"
    if name == "int":
        return "int256"
    if name == "address payable":
        return "address"
    if name == "byte":
        return "bytes1"
    if name.startswith("contract ") or name.startswith("interface "):
        return "address"
    if name.startswith("enum "):
        return "uint8"
    return name


def _decode_uint(data: bytes) -> str:
    return str(int.from_bytes(data, "big"))


def _decode_int(data: bytes) -> str:
    value = int.from_bytes(data, "big")
    if value > MAX_INT256:
        value -= UINT256_MODULUS
    return str(value)


def _decode_address(data: bytes) -> str:
    return to_checksum_address(data[-20:])


def _decode_bool(data: bytes) -> bool:
    return data[-1] != 0


def _decode_string(data: bytes) -> Optional[str]:
    # Only short strings stored inline in a single word are recovered.
    if data[0] == 0:
        payload = data.replace(b"\x00", b"")
    else:
        payload = data.split(b"\x00", 1)[0]
    if not payload:
        return None
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError:
        return None


def decode_hinted(type_name: str, word: Union[str, bytes]) -> Any:
    """
    Decode ``word`` as ``type_name``.

    A zero word yields ``None`` whatever the hint, so callers can tell
    untouched storage apart from a decoded value. Unknown types also yield
    ``None``.
    """
    normalized = normalize_word(word)
    if normalized == ZERO_WORD:
        return None

    data = bytes.fromhex(normalized[2:])
    name = canonical_type(type_name)

    if _UINT_RE.match(name):
        return _decode_uint(data)
    if _INT_RE.match(name):
        return _decode_int(data)
    if name == "address":
        return _decode_address(data)
    if name == "bool":
        return _decode_bool(data)
    if _BYTES_RE.match(name):
        return normalized
    if name == "string":
        return _decode_string(data)
    return None


def _looks_like_address(data: bytes) -> bool:
    if any(data[:12]):
        return False
    return int.from_bytes(data[12:], "big") >= MIN_PLAUSIBLE_ADDRESS


def _looks_like_bool(data: bytes) -> bool:
    return not any(data[:-1]) and data[-1] in (0, 1)


# Evaluated in order; the first match wins. The uint256 entry always matches
# and must stay last.
AUTO_CLASSIFIERS: Tuple[SlotClassifier, ...] = (
    SlotClassifier("address", _looks_like_address, _decode_address),
    SlotClassifier("bool", _looks_like_bool, _decode_bool),
    SlotClassifier("uint256", lambda data: True, _decode_uint),
)


def decode_auto(
    word: Union[str, bytes],
    classifiers: Sequence[SlotClassifier] = AUTO_CLASSIFIERS,
) -> Decoded:
    """Guess the type of a word with no hint available."""
    normalized = normalize_word(word)
    if normalized == ZERO_WORD:
        return Decoded("unknown", None)

    data = bytes.fromhex(normalized[2:])
    for classifier in classifiers:
        if classifier.matches(data):
            return Decoded(classifier.type_name, classifier.decode(data))
    return Decoded("unknown", None)


def format_value(type_name: str, value: Any) -> str:
    """Render a decoded value for the variable view."""
    if value is None:
        return "0x0"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _hex_body(key: str) -> str:
    text = key.strip()
    if text.lower().startswith("0x"):
        text = text[2:]
    if len(text) % 2:
        text = "0" + text
    try:
        bytes.fromhex(text)
    except ValueError as exc:
        raise ValueError(f"Mapping key must be hex, got '{key}'.") from exc
    return text


def _key_word(key: Any, key_type: str) -> bytes:
    name = canonical_type(key_type)
    if isinstance(key, bool):
        return int(key).to_bytes(WORD_SIZE, "big")
    if isinstance(key, int):
        return bytes.fromhex(int_to_word(key)[2:])
    if isinstance(key, str) and (_UINT_RE.match(name) or _INT_RE.match(name)):
        text = key.strip()
        if not text.lower().startswith("0x"):
            return bytes.fromhex(int_to_word(int(text, 10))[2:])
    if isinstance(key, (bytes, bytearray)):
        raw = bytes(key)
    elif isinstance(key, str):
        raw = bytes.fromhex(_hex_body(key))
    else:
        raise ValueError(f"Unsupported mapping key {key!r}.")
    if len(raw) > WORD_SIZE:
        raise ValueError(f"Mapping key longer than {WORD_SIZE} bytes.")
    # Fixed-size byte arrays are left-aligned; every other value type is right-aligned.
    if _BYTES_RE.match(name) and name != "bytes":
        return raw.ljust(WORD_SIZE, b"\x00")
    return raw.rjust(WORD_SIZE, b"\x00")


def derive_mapping_slot(base_slot: SlotKey, key: Any, key_type: str) -> str:
    """
    Storage key of ``mapping[key]`` declared at ``base_slot``.

    Computes ``keccak256(h(key) . uint256(base_slot))`` where ``h`` pads value
    types to a full word. Address keys go through ``abi.encode(address, uint256)``;
    ``string`` and ``bytes`` keys are hashed unpadded, as Solidity does.
    """
    base = slot_to_int(base_slot)
    name = canonical_type(key_type)

    if name == "address":
        if isinstance(key, bool):
            raise ValueError("Address mapping key cannot be a boolean.")
        if isinstance(key, int):
            if key < 0 or key >= 1 << 160:
                raise ValueError(f"Address mapping key {key} does not fit in 20 bytes.")
            address = to_checksum_address(key.to_bytes(20, "big"))
        elif isinstance(key, (bytes, bytearray)):
            address = to_checksum_address(bytes(key).rjust(20, b"\x00")[-20:])
        elif isinstance(key, str):
            address = to_checksum_address("0x" + _hex_body(key).rjust(40, "0")[-40:])
        else:
            raise ValueError(f"Unsupported address mapping key {key!r}.")
        preimage = encode(["address", "uint256"], [address, base])
    elif name in ("string", "bytes"):
        if isinstance(key, str) and name == "string":
            raw = key.encode("utf-8")
        elif isinstance(key, str):
            raw = bytes.fromhex(_hex_body(key))
        elif isinstance(key, (bytes, bytearray)):
            raw = bytes(key)
        else:
            raise ValueError(f"{name} mapping key must be text or bytes, got {key!r}.")
        preimage = raw + base.to_bytes(WORD_SIZE, "big")
    else:
        preimage = encode(["bytes32", "uint256"], [_key_word(key, name), base])

    return "0x" + keccak(preimage).hex()


def derive_nested_mapping_slot(
    base_slot: SlotKey,
    keys: Sequence[Any],
    key_types: Sequence[str],
) -> str:
    """Fold ``derive_mapping_slot`` over ``m[k1][k2]...``."""
    if len(keys) != len(key_types):
        raise ValueError(f"Got {len(keys)} keys but {len(key_types)} key types.")
    if not keys:
        raise ValueError("At least one mapping key is required.")
    slot = base_slot
    for key, key_type in zip(keys, key_types):
        slot = derive_mapping_slot(slot, key, key_type)
    return slot


def derive_array_slot(base_slot: SlotKey, index: int) -> str:
    """Storage key of element ``index`` of a dynamic array declared at ``base_slot``."""
    if isinstance(index, bool) or not isinstance(index, int) or index < 0:
        raise ValueError("Array index must be a non-negative integer.")
    start = int.from_bytes(keccak(encode(["uint256"], [slot_to_int(base_slot)])), "big")
    return "0x" + format((start + index) % UINT256_MODULUS, "064x")

