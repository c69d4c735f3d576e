from __future__ import annotations

import hashlib
from typing import Any

from borsh_construct import CStruct, I64, U8, U64
from construct import Bytes

DISCRIMINATOR_SIZE = 8

PUBKEY = Bytes(32)


def account_discriminator(name: str) -> bytes:
    """Anchor account discriminator: first 8 bytes of sha256("account:<Name>")."""
    return hashlib.sha256(f"account:{name}".encode("utf-8")).digest()[:DISCRIMINATOR_SIZE]


def instruction_discriminator(name: str) -> bytes:
    """Anchor instruction discriminator: first 8 bytes of sha256("global:<snake_name>")."""
    return hashlib.sha256(f"global:{name}".encode("utf-8")).digest()[:DISCRIMINATOR_SIZE]


ORDER_STATE_DISCRIMINATOR = account_discriminator("OrderState")
SET_ORDER_STATE_DISCRIMINATOR = instruction_discriminator("set_order_state")

ORDER_STATE_LAYOUT = CStruct(
    "buyer" / PUBKEY,
    "seller" / PUBKEY,
    "mint" / PUBKEY,
    "trade_id" / U64,
    "order_amount" / U64,
    "paid_amount" / U64,
    "claimed_amount" / U64,
    "payment_mode" / U8,
    "advance_percentage" / U8,
    "status" / U8,
    "created_at" / I64,
    "paid_at" / I64,
    "shipped_at" / I64,
    "confirmed_at" / I64,
    "completed_at" / I64,
    "bump" / U8,
)

SET_ORDER_STATE_ARGS = CStruct(
    "trade_id" / U64,
    "new_status" / U8,
)


def decode_order_state(data: bytes) -> Any:
    """
    Parse raw account bytes (discriminator included) into a construct Container.

    Raises ValueError on a wrong discriminator; construct errors propagate on
    truncated data. Trailing bytes (account padding) are ignored.
    """
    if data[:DISCRIMINATOR_SIZE] != ORDER_STATE_DISCRIMINATOR:
        raise ValueError("account data does not start with the OrderState discriminator")
    return ORDER_STATE_LAYOUT.parse(data[DISCRIMINATOR_SIZE:])


def encode_order_state(fields: dict[str, Any]) -> bytes:
    return ORDER_STATE_DISCRIMINATOR + ORDER_STATE_LAYOUT.build(fields)


def encode_set_order_state(trade_id: int, new_status: int) -> bytes:
    return SET_ORDER_STATE_DISCRIMINATOR + SET_ORDER_STATE_ARGS.build(
        {"trade_id": int(trade_id), "new_status": int(new_status)}
    )


def decode_set_order_state(data: bytes) -> Any:
    if data[:DISCRIMINATOR_SIZE] != SET_ORDER_STATE_DISCRIMINATOR:
        raise ValueError("instruction data is not a set_order_state call")
    return SET_ORDER_STATE_ARGS.parse(data[DISCRIMINATOR_SIZE:])
