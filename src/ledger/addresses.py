from __future__ import annotations

from typing import Any

from solders.pubkey import Pubkey

from src.ledger.errors import ValidationError

CONFIG_SEED = b"config"
ORDER_SEED = b"order"

U64_MAX = 2**64 - 1


def encode_trade_id(trade_id: int) -> bytes:
    """Encode a trade id the way the program seeds it: u64, little-endian."""
    if isinstance(trade_id, bool) or not isinstance(trade_id, int):
        raise ValidationError(f"trade id must be an integer; got {type(trade_id).__name__}")
    if trade_id < 0 or trade_id > U64_MAX:
        raise ValidationError(f"trade id {trade_id} does not fit in an unsigned 64-bit integer")
    return trade_id.to_bytes(8, "little")


def normalise_trade_id(value: Any) -> int:
    """
    Accept a trade id as an int or a decimal string and return it as an int.

    Anything that is not a whole number in the u64 range raises ValidationError.
    """
    if isinstance(value, bool):
        raise ValidationError("trade id must be an integer or decimal string; got bool")
    if isinstance(value, int):
        trade_id = value
    elif isinstance(value, str):
        text = value.strip()
        if not text or not text.isdigit() or not text.isascii():
            raise ValidationError(f"trade id must be a decimal string; got {value!r}")
        trade_id = int(text)
    else:
        raise ValidationError(f"trade id must be an integer or decimal string; got {type(value).__name__}")

    # Range check lives in the encoder.
    encode_trade_id(trade_id)
    return trade_id


def find_config_address(program_id: Pubkey) -> tuple[Pubkey, int]:
    return Pubkey.find_program_address([CONFIG_SEED], program_id)


def find_order_address(program_id: Pubkey, trade_id: int) -> tuple[Pubkey, int]:
    return Pubkey.find_program_address([ORDER_SEED, encode_trade_id(trade_id)], program_id)
