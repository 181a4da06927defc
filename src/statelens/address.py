from typing import Any

from eth_utils import is_address, to_checksum_address

from .errors import InvalidAddressError

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def is_valid_address(address: Any) -> bool:
    """True for 0x-prefixed 40-hex strings; mixed case must carry a valid checksum."""
    if not isinstance(address, str):
        return False
    candidate = address.strip()
    if not candidate.startswith(("0x", "0X")) or len(candidate) != 42:
        return False
    return is_address(candidate)


def normalize_address(address: Any) -> str:
    """Validate an address and return its checksummed display form."""
    if not isinstance(address, str):
        raise InvalidAddressError("Address must be a string.")
    candidate = address.strip()
    if not is_valid_address(candidate):
        raise InvalidAddressError(
            f"Invalid address: {address}. Expected 0x-prefixed 40 hex characters with a valid checksum."
        )
    return to_checksum_address(candidate)


def address_key(address: str) -> str:
    """Lowercase comparison form used for cache keys and equality checks."""
    return normalize_address(address).lower()


def is_zero_address(address: str) -> bool:
    return address.strip().lower() == ZERO_ADDRESS
