from statelens.abi import VariableHint
from statelens.decoder import ZERO_WORD, int_to_word
from statelens.layout import (
    LayoutEntry,
    get_variable_slot,
    map_layout_by_label,
    parse_storage_layout,
    resolve_type_label,
)
from statelens.strategies import AbiHintStrategy, HeuristicStrategy, LayoutStrategy

from conftest import ADMIN, address_word

SOLC_LAYOUT = {
    "storageLayout": {
        "storage": [
            {"astId": 3, "contract": "A.sol:A", "label": "owner", "offset": 0, "slot": "0", "type": "t_address"},
            {"astId": 5, "contract": "A.sol:A", "label": "paused", "offset": 20, "slot": "0", "type": "t_bool"},
            {"astId": 7, "contract": "A.sol:A", "label": "total", "offset": 0, "slot": "1", "type": "t_uint256"},
            {"astId": 9, "contract": "A.sol:A", "label": "delta", "offset": 0, "slot": "2", "type": "t_int128"},
            {"astId": 11, "contract": "A.sol:A", "label": "far", "offset": 0, "slot": "900", "type": "t_uint256"},
        ],
        "types": {
            "t_address": {"encoding": "inplace", "label": "address", "numberOfBytes": "20"},
            "t_bool": {"encoding": "inplace", "label": "bool", "numberOfBytes": "1"},
            "t_uint256": {"encoding": "inplace", "label": "uint256", "numberOfBytes": "32"},
            "t_int128": {"encoding": "inplace", "label": "int128", "numberOfBytes": "16"},
        },
    }
}


def test_parse_solc_output():
    layout = parse_storage_layout(SOLC_LAYOUT)
    assert layout is not None
    assert layout.storage[0] == LayoutEntry(label="owner", type="address", slot=0, offset=0, size=20)
    assert layout.storage[1] == LayoutEntry(label="paused", type="bool", slot=0, offset=20, size=1)
    assert get_variable_slot(layout, "total") == 1
    assert get_variable_slot(layout, "missing") is None
    assert set(map_layout_by_label(layout)) == {"owner", "paused", "total", "delta", "far"}


def test_parse_bare_layout_and_skip_malformed():
    layout = parse_storage_layout(
        {"storage": [{"label": "owner", "type": "address", "slot": 0}, {"label": "broken"}, "junk"]}
    )
    assert layout.storage == [LayoutEntry(label="owner", type="address", slot=0)]


def test_parse_rejects_non_layout():
    assert parse_storage_layout(None) is None
    assert parse_storage_layout({"abi": []}) is None
    assert parse_storage_layout([1, 2]) is None


def test_resolve_type_label_without_types_table():
    assert resolve_type_label("t_uint256", {}) == "uint256"
    assert resolve_type_label("t_string_storage", {}) == "string"
    assert resolve_type_label("t_contract(IERC20)123", {}) == "address"
    assert resolve_type_label("address", {}) == "address"


def test_layout_strategy_unpacks_and_skips_uncrawled():
    layout = parse_storage_layout(SOLC_LAYOUT)
    # slot 0: paused (offset 20) = 1, owner (offset 0) = ADMIN
    slot0 = "0x" + "00" * 11 + "01" + ADMIN[2:].lower()
    words = {0: slot0, 1: int_to_word(10**18), 2: int_to_word(-5)}

    variables = LayoutStrategy(layout).build(words)

    by_name = {v.name: v for v in variables}
    assert by_name["owner"].value == ADMIN
    assert by_name["paused"].value == "true"
    assert by_name["total"].value == str(10**18)
    assert by_name["delta"].value == "-5"
    assert "far" not in by_name


def test_layout_strategy_zero_word_formats_as_empty():
    layout = parse_storage_layout({"storage": [{"label": "owner", "type": "address", "slot": 0}]})
    variables = LayoutStrategy(layout).build({0: ZERO_WORD})
    assert variables[0].value == "0x0"


def test_abi_hint_strategy_aligns_by_position():
    hints = [VariableHint("owner", "address"), VariableHint("paused", "bool"), VariableHint("extra", "uint256")]
    words = {0: address_word(ADMIN), 1: int_to_word(1)}

    variables = AbiHintStrategy(hints).build(words)

    assert [(v.name, v.slot, v.value) for v in variables] == [
        ("owner", 0, ADMIN),
        ("paused", 1, "true"),
    ]


def test_heuristic_strategy_names_non_empty_slots():
    words = {0: ZERO_WORD, 3: int_to_word(77), 5: int_to_word(1)}
    variables = HeuristicStrategy().build(words)
    assert [(v.name, v.type, v.value, v.slot) for v in variables] == [
        ("slot_3", "uint256", "77", 3),
        ("slot_5", "bool", "true", 5),
    ]
