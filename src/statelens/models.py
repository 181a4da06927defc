from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .decoder import SlotKey, decode_auto

PROXY_TYPE_EIP1967 = "eip1967"
PROXY_TYPE_CUSTOM = "custom"

ABI_SOURCE_PROVIDED = "provided"
ABI_SOURCE_EXPLORER = "explorer"
ABI_SOURCE_LOCAL = "local"

DecodedValue = Union[None, bool, str]


@dataclass(frozen=True)
class ProxyInfo:
    is_proxy: bool
    proxy_type: Optional[str] = None
    implementation_address: Optional[str] = None
    admin_address: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_proxy": self.is_proxy,
            "proxy_type": self.proxy_type,
            "implementation_address": self.implementation_address,
            "admin_address": self.admin_address,
        }


@dataclass(frozen=True)
class DecodedSlot:
    slot: SlotKey
    raw: str
    decoded_type: str
    decoded_value: DecodedValue

    @classmethod
    def from_word(cls, slot: SlotKey, raw: str) -> "DecodedSlot":
        decoded = decode_auto(raw)
        return cls(slot=slot, raw=raw, decoded_type=decoded.type, decoded_value=decoded.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slot": self.slot,
            "raw": self.raw,
            "decoded_type": self.decoded_type,
            "decoded_value": self.decoded_value,
        }


@dataclass(frozen=True)
class VariableEntry:
    name: str
    type: str
    value: Optional[str]
    slot: Optional[SlotKey] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "value": self.value,
            "slot": self.slot,
        }


@dataclass
class StorageReport:
    """Everything one analysis produces for one address."""

    address: str
    proxy: ProxyInfo
    slot_view: List[DecodedSlot] = field(default_factory=list)
    variable_view: List[VariableEntry] = field(default_factory=list)
    abi_source: Optional[str] = None
    block_number: Optional[int] = None

    @property
    def is_proxy(self) -> bool:
        return self.proxy.is_proxy

    @property
    def implementation_address(self) -> Optional[str]:
        return self.proxy.implementation_address

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "is_proxy": self.is_proxy,
            "implementation_address": self.implementation_address,
            "proxy": self.proxy.to_dict(),
            "slot_view": [item.to_dict() for item in self.slot_view],
            "variable_view": [item.to_dict() for item in self.variable_view],
            "abi_source": self.abi_source,
            "block_number": self.block_number,
        }
