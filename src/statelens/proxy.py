import logging
from typing import Optional

from eth_utils import to_checksum_address

from .address import is_zero_address
from .decoder import is_zero_word, word_to_bytes
from .errors import StateLensError
from .models import PROXY_TYPE_EIP1967, ProxyInfo
from .rpc_client import ChainClient

logger = logging.getLogger(__name__)

# bytes32(uint256(keccak256("eip1967.proxy.<name>")) - 1)
EIP1967_IMPLEMENTATION_SLOT = "0x360894a13ba1a3210667c828492db98dca3e2076cc3735a920a3ca505d382bbc"
EIP1967_ADMIN_SLOT = "0xb53127684a568b3173ae13b9f8a6016e243e63b6e8ee1178d6a717850b5d6103"
EIP1967_BEACON_SLOT = "0xa3f0ad74e5423aebfd80d3ef4346578335a9a72aeaee59ff6cb3582b35133d50"


def storage_word_to_address(word: str) -> Optional[str]:
    """Low 20 bytes of a word as a checksummed address, or None when it holds no address."""
    if is_zero_word(word):
        return None
    address = to_checksum_address(word_to_bytes(word)[-20:])
    return None if is_zero_address(address) else address


class ProxyResolver:
    """Detects EIP-1967 transparent/UUPS proxies from their reserved storage slots."""

    def __init__(self, chain: ChainClient) -> None:
        self.chain = chain

    async def detect(self, address: str, block_number: Optional[int] = None) -> ProxyInfo:
        try:
            impl_word = await self.chain.read_word(
                address, EIP1967_IMPLEMENTATION_SLOT, block_number
            )
            implementation = storage_word_to_address(impl_word)
            if implementation is None:
                return ProxyInfo(is_proxy=False)

            admin_word = await self.chain.read_word(address, EIP1967_ADMIN_SLOT, block_number)
            admin = storage_word_to_address(admin_word)
        except StateLensError as exc:
            logger.error("Error detecting proxy for %s: %s", address, exc)
            return ProxyInfo(is_proxy=False)

        logger.info("%s is an EIP-1967 proxy for %s", address, implementation)
        return ProxyInfo(
            is_proxy=True,
            proxy_type=PROXY_TYPE_EIP1967,
            implementation_address=implementation,
            admin_address=admin,
        )

    async def resolve_implementation(self, address: str) -> Optional[str]:
        info = await self.detect(address)
        return info.implementation_address
