from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from src.ledger.errors import LedgerError


class OrderStatus(IntEnum):
    # Values are the Borsh variant indices used by the program.
    Created = 0
    Signed = 1
    Paid = 2
    Shipped = 3
    Confirmed = 4
    Completed = 5

    @classmethod
    def parse(cls, value: Any) -> OrderStatus:
        """Resolve an enum member or its name (case-insensitive); ValueError otherwise."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            wanted = value.strip().lower()
            for member in cls:
                if member.name.lower() == wanted:
                    return member
        raise ValueError(f"Unrecognised order status: {value!r}")


class PaymentMode(IntEnum):
    Full = 0
    Advance = 1


@dataclass(frozen=True)
class OrderData:
    public_key: str
    buyer: str
    seller: str
    mint: str
    trade_id: str
    order_amount: str
    paid_amount: str
    claimed_amount: str
    payment_mode: str
    advance_percentage: int
    status: str
    created_at: str
    paid_at: str
    shipped_at: str
    confirmed_at: str
    completed_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "publicKey": self.public_key,
            "buyer": self.buyer,
            "seller": self.seller,
            "mint": self.mint,
            "tradeId": self.trade_id,
            "orderAmount": self.order_amount,
            "paidAmount": self.paid_amount,
            "claimedAmount": self.claimed_amount,
            "paymentMode": self.payment_mode,
            "advancePercentage": int(self.advance_percentage),
            "status": self.status,
            "createdAt": self.created_at,
            "paidAt": self.paid_at,
            "shippedAt": self.shipped_at,
            "confirmedAt": self.confirmed_at,
            "completedAt": self.completed_at,
        }


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    price_lamports: str
    seller: str
    image_url: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "priceLamports": self.price_lamports,
            "seller": self.seller,
            "imageUrl": self.image_url,
        }


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a state transition: a signature, or the error that stopped it."""

    signature: str | None = None
    error: LedgerError | None = None

    @property
    def ok(self) -> bool:
        return self.signature is not None and self.error is None
