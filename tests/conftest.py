import threading

import pytest

from statelens.abi import AbiResolver
from statelens.analyzer import StorageAnalyzer
from statelens.batcher import SlotBatcher
from statelens.decoder import ZERO_WORD, normalize_word, slot_to_int
from statelens.errors import RpcConnectionError, RpcRequestError
from statelens.proxy import ProxyResolver
from statelens.rpc_client import ChainClient

CONTRACT = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
IMPLEMENTATION = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"
ADMIN = "0xdbF03B407c01E7cD3CBea99509d93f8DDDC8C6FB"
EOA = "0xD1220A0cf47c7B9Be7A2E6BA89F429762e7b9aDb"


def address_word(address: str) -> str:
    return "0x" + address[2:].lower().rjust(64, "0")


class FakeRpc:
    """In-memory stand-in for ``RpcClient`` answering the calls ChainClient makes."""

    def __init__(self, block_number: int = 1234):
        self.code = {}
        self.storage = {}
        self.fail_slots = {}
        self.block_number = block_number
        self.down = False
        self.calls = []
        self._lock = threading.Lock()

    def set_code(self, address: str, code: str = "0x6080604052") -> None:
        self.code[address.lower()] = code

    def set_word(self, address: str, slot, word: str) -> None:
        self.storage[(address.lower(), slot_to_int(slot))] = normalize_word(word)

    def fail_slot(self, address: str, slot, error: Exception) -> None:
        self.fail_slots[(address.lower(), slot_to_int(slot))] = error

    def storage_calls(self):
        return [params for method, params in self.calls if method == "eth_getStorageAt"]

    def call(self, method, params=None):
        params = params or []
        with self._lock:
            self.calls.append((method, params))
        if self.down:
            raise RpcConnectionError("connection refused")
        if method == "eth_getCode":
            return self.code.get(params[0].lower(), "0x")
        if method == "eth_blockNumber":
            return hex(self.block_number)
        if method == "eth_getStorageAt":
            key = (params[0].lower(), int(params[1], 16))
            if key in self.fail_slots:
                raise self.fail_slots[key]
            return self.storage.get(key, ZERO_WORD)
        raise RpcRequestError(f"RPC error: method {method} not supported.")


@pytest.fixture
def rpc():
    fake = FakeRpc()
    fake.set_code(CONTRACT)
    return fake


@pytest.fixture
def chain(rpc):
    return ChainClient(rpc)


@pytest.fixture
def analyzer(chain):
    return StorageAnalyzer(
        chain=chain,
        batcher=SlotBatcher(chain, batch_size=4, delay_seconds=0),
        proxy_resolver=ProxyResolver(chain),
        abi_resolver=AbiResolver(),
        max_slots=8,
    )
