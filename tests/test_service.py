import asyncio

import pytest

from statelens.cache import ResponseCache, abi_key, custom_storage_key, proxy_key, storage_key
from statelens.config import Config
from statelens.decoder import derive_array_slot, derive_mapping_slot, int_to_word
from statelens.errors import InvalidAddressError
from statelens.service import StorageService

from conftest import ADMIN, CONTRACT, address_word


@pytest.fixture
def service(rpc):
    config = Config(
        rpc_url="http://node.local:8545",
        max_storage_slots=4,
        batch_size=2,
        batch_delay_seconds=0,
    )
    return StorageService(config, rpc=rpc)


def test_analyze_storage_caches_plain_requests(rpc, service):
    rpc.set_word(CONTRACT, 1, int_to_word(5))

    first = asyncio.run(service.analyze_storage(CONTRACT.lower()))
    calls_after_first = len(rpc.calls)
    second = asyncio.run(service.analyze_storage(CONTRACT))

    assert first == second
    assert len(rpc.calls) == calls_after_first
    assert service.cache.get(storage_key(CONTRACT)) == first


def test_analyze_storage_keys_layout_requests_separately(rpc, service):
    rpc.set_word(CONTRACT, 0, address_word(ADMIN))
    asyncio.run(service.analyze_storage(CONTRACT))
    calls_after_plain = len(rpc.calls)

    layout = {"storage": [{"label": "owner", "type": "address", "slot": 0}]}
    result = asyncio.run(service.analyze_storage(CONTRACT, layout=layout))

    assert len(rpc.calls) > calls_after_plain
    assert result["variable_view"] == [{"name": "owner", "type": "address", "value": ADMIN, "slot": 0}]

    plain = asyncio.run(service.analyze_storage(CONTRACT))
    assert plain["variable_view"] == [{"name": "slot_0", "type": "address", "value": ADMIN, "slot": 0}]
    assert service.cache.get(custom_storage_key(CONTRACT, None, None, layout)) == result


def test_analyze_storage_non_default_max_slots_is_not_cached(rpc, service):
    result = asyncio.run(service.analyze_storage(CONTRACT, max_slots=2))
    assert len(result["slot_view"]) == 2
    assert service.cache.get(storage_key(CONTRACT)) is None


@pytest.mark.parametrize("max_slots", [0, -3, 1001, "many", True])
def test_analyze_storage_rejects_bad_max_slots(service, max_slots):
    with pytest.raises(ValueError):
        asyncio.run(service.analyze_storage(CONTRACT, max_slots=max_slots))


def test_analyze_storage_rejects_bad_address(rpc, service):
    with pytest.raises(InvalidAddressError):
        asyncio.run(service.analyze_storage("0x1234"))
    # Mixed case with a broken checksum is not silently accepted.
    with pytest.raises(InvalidAddressError):
        asyncio.run(service.analyze_storage("0x5AAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"))
    assert rpc.calls == []


def test_read_slots(rpc, service):
    rpc.set_word(CONTRACT, 2, int_to_word(8))
    result = asyncio.run(service.read_slots(CONTRACT, [2, "0x3"]))
    assert result["address"] == CONTRACT
    assert [s["slot"] for s in result["slots"]] == [2, 3]
    assert result["slots"][0]["decoded_value"] == "8"


def test_read_slots_limits(service):
    with pytest.raises(ValueError):
        asyncio.run(service.read_slots(CONTRACT, list(range(101))))
    with pytest.raises(ValueError):
        asyncio.run(service.read_slots(CONTRACT, "0,1"))
    with pytest.raises(ValueError):
        asyncio.run(service.read_slots(CONTRACT, [-1]))


def test_detect_proxy(service):
    result = asyncio.run(service.detect_proxy(CONTRACT))
    assert result == {
        "address": CONTRACT,
        "is_proxy": False,
        "proxy_type": None,
        "implementation_address": None,
        "admin_address": None,
    }


def test_detect_proxy_is_cached_for_latest_block(rpc, service):
    asyncio.run(service.detect_proxy(CONTRACT))
    asyncio.run(service.detect_proxy(CONTRACT))
    assert len(rpc.storage_calls()) == 1

    asyncio.run(service.detect_proxy(CONTRACT, block_number=10))
    assert len(rpc.storage_calls()) == 2


def test_health(rpc, service):
    healthy = asyncio.run(service.health())
    assert healthy["status"] == "healthy"
    assert healthy["block_number"] == 1234

    rpc.down = True
    unhealthy = asyncio.run(service.health())
    assert unhealthy["status"] == "unhealthy"
    assert "connection refused" in unhealthy["error"]


def test_derive_slot():
    mapping = StorageService.derive_slot(3, keys=[ADMIN], key_types=["address"])
    assert mapping == {"base_slot": 3, "kind": "mapping", "slot": derive_mapping_slot(3, ADMIN, "address")}

    array = StorageService.derive_slot("0x2", index=4)
    assert array == {"base_slot": 2, "kind": "array", "slot": derive_array_slot(2, 4)}

    with pytest.raises(ValueError):
        StorageService.derive_slot(1)
    with pytest.raises(ValueError):
        StorageService.derive_slot(1, keys=[1], key_types=["uint256"], index=0)


def test_ttl_cache_expiry():
    now = [100.0]
    cache = ResponseCache(default_ttl=10, clock=lambda: now[0])
    cache.set("a", 1)
    cache.set("b", 2, ttl=60)

    now[0] = 109.0
    assert cache.get("a") == 1
    now[0] = 110.0
    assert cache.get("a") is None
    assert cache.get("b") == 2

    assert cache.delete("b") is True
    assert cache.delete("b") is False
    cache.set("c", 3)
    cache.clear()
    assert cache.get("c") is None


def test_expired_entries_are_evicted_on_write():
    now = [0.0]
    cache = ResponseCache(default_ttl=60, maxsize=5000, clock=lambda: now[0])
    for i in range(1000):
        cache.set(f"custom:{i}", {"i": i})
    assert len(cache) == 1000

    now[0] = 10000.0
    cache.set("fresh", 1)

    assert len(cache) == 1
    assert cache.get("fresh") == 1


def test_cache_is_bounded():
    cache = ResponseCache(default_ttl=60, maxsize=3)
    for i in range(10):
        cache.set(str(i), i)
    assert len(cache) == 3
    assert cache.get("9") == 9


def test_cached_results_are_not_shared_with_callers(rpc, service):
    first = asyncio.run(service.analyze_storage(CONTRACT))
    first["slot_view"].clear()
    first["address"] = "mutated"

    second = asyncio.run(service.analyze_storage(CONTRACT))
    second["variable_view"].append({"name": "junk"})

    third = asyncio.run(service.analyze_storage(CONTRACT))
    assert third["address"] == CONTRACT
    assert len(third["slot_view"]) == 4
    assert {"name": "junk"} not in third["variable_view"]

    proxy = asyncio.run(service.detect_proxy(CONTRACT))
    proxy["is_proxy"] = True
    assert asyncio.run(service.detect_proxy(CONTRACT))["is_proxy"] is False


def test_cache_keys_are_lowercase():
    assert storage_key(CONTRACT) == f"storage:{CONTRACT.lower()}:latest"
    assert storage_key(CONTRACT, 12) == f"storage:{CONTRACT.lower()}:12"
    assert abi_key(CONTRACT) == f"abi:{CONTRACT.lower()}"
    assert proxy_key(CONTRACT) == f"proxy:{CONTRACT.lower()}"
