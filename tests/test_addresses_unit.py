import pytest
from solders.pubkey import Pubkey

from src.ledger.addresses import (
    U64_MAX,
    encode_trade_id,
    find_config_address,
    find_order_address,
    normalise_trade_id,
)
from src.ledger.errors import ValidationError

PROGRAM_ID = Pubkey.from_string("EHxoxzqUShPuJbcSVFvqAVizLJxUpENTKnMBUGKSgQkc")


def test_config_address_is_stable_across_calls():
    first = find_config_address(PROGRAM_ID)
    second = find_config_address(PROGRAM_ID)
    assert first == second
    assert first == Pubkey.find_program_address([b"config"], PROGRAM_ID)


def test_order_address_for_42_is_deterministic_and_differs_from_43():
    addr_42, bump_42 = find_order_address(PROGRAM_ID, 42)
    assert find_order_address(PROGRAM_ID, 42) == (addr_42, bump_42)
    assert find_order_address(PROGRAM_ID, 43)[0] != addr_42


def test_order_address_uses_order_seed_and_u64_little_endian():
    expected = Pubkey.find_program_address([b"order", bytes([42, 0, 0, 0, 0, 0, 0, 0])], PROGRAM_ID)
    assert find_order_address(PROGRAM_ID, 42) == expected


@pytest.mark.parametrize(
    "wrong_seeds",
    [
        [b"order", (1001).to_bytes(8, "big")],
        [b"order", (1001).to_bytes(4, "little")],
        [b"order", (1001).to_bytes(16, "little")],
        [b"orders", (1001).to_bytes(8, "little")],
        [b"order", b"1001"],
    ],
    ids=["big-endian", "4-byte", "16-byte", "wrong-seed", "decimal-text"],
)
def test_order_address_rejects_near_miss_encodings(wrong_seeds):
    assert find_order_address(PROGRAM_ID, 1001)[0] != Pubkey.find_program_address(wrong_seeds, PROGRAM_ID)[0]


def test_order_address_is_off_curve_and_program_specific():
    addr, _ = find_order_address(PROGRAM_ID, 7)
    assert not addr.is_on_curve()
    other_program = Pubkey.from_string("11111111111111111111111111111111")
    assert find_order_address(other_program, 7)[0] != addr


def test_distinct_trade_ids_yield_distinct_addresses():
    ids = [0, 1, 2, 255, 256, 65535, 65536, 2**32 - 1, 2**32, 2**63, U64_MAX - 1, U64_MAX]
    addresses = {find_order_address(PROGRAM_ID, i)[0] for i in ids}
    assert len(addresses) == len(ids)


def test_encode_trade_id_bounds():
    assert encode_trade_id(0) == b"\x00" * 8
    assert encode_trade_id(U64_MAX) == b"\xff" * 8
    assert encode_trade_id(0x0102030405060708) == bytes([8, 7, 6, 5, 4, 3, 2, 1])
    with pytest.raises(ValidationError):
        encode_trade_id(U64_MAX + 1)
    with pytest.raises(ValidationError):
        encode_trade_id(-1)
    with pytest.raises(ValidationError):
        find_order_address(PROGRAM_ID, 2**64)


@pytest.mark.parametrize(
    "raw, expected",
    [(1001, 1001), ("1001", 1001), ("  42 ", 42), ("0", 0), (str(U64_MAX), U64_MAX)],
)
def test_normalise_trade_id_accepts_ints_and_decimal_strings(raw, expected):
    assert normalise_trade_id(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["", "   ", "-1", "1e3", "0x10", "12.0", "abc", str(2**64), 2**64, -5, True, 3.0, None, "١٢"],
)
def test_normalise_trade_id_rejects_invalid_values(raw):
    with pytest.raises(ValidationError):
        normalise_trade_id(raw)
