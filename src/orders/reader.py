from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from construct import ConstructError
from solders.pubkey import Pubkey

from src.domain.models import OrderData, OrderStatus, PaymentMode
from src.ledger.errors import LedgerError
from src.ledger.layout import ORDER_STATE_DISCRIMINATOR, decode_order_state

if TYPE_CHECKING:
    from src.ports.ledger import LedgerPort

logger = logging.getLogger(__name__)


class OrderDecodeError(LedgerError):
    """An order account could not be deserialised."""


def project_order(pubkey: Pubkey, data: bytes) -> OrderData:
    """Flatten one raw OrderState account into its transport form."""
    try:
        acc = decode_order_state(data)
        payment_mode = PaymentMode(acc.payment_mode).name
        status = OrderStatus(acc.status).name
    except (ConstructError, ValueError) as e:
        raise OrderDecodeError(f"Cannot decode order account {pubkey}: {e}") from e

    return OrderData(
        public_key=str(pubkey),
        buyer=str(Pubkey.from_bytes(acc.buyer)),
        seller=str(Pubkey.from_bytes(acc.seller)),
        mint=str(Pubkey.from_bytes(acc.mint)),
        trade_id=str(acc.trade_id),
        order_amount=str(acc.order_amount),
        paid_amount=str(acc.paid_amount),
        claimed_amount=str(acc.claimed_amount),
        payment_mode=payment_mode,
        advance_percentage=int(acc.advance_percentage),
        status=status,
        created_at=str(acc.created_at),
        paid_at=str(acc.paid_at),
        shipped_at=str(acc.shipped_at),
        confirmed_at=str(acc.confirmed_at),
        completed_at=str(acc.completed_at),
    )


class OrderStateReader:
    """
    Reads every order account held by the program.

    The scan is unfiltered and unpaginated: fine at current volumes, and the
    first thing to replace with a paged fetch if order counts grow.
    """

    def __init__(self, ledger: LedgerPort) -> None:
        self._ledger = ledger
        self.last_error: Exception | None = None

    async def fetch_all_orders(self) -> list[OrderData]:
        """Like `list_all_orders`, but raises LedgerError instead of returning []."""
        accounts = await self._ledger.get_program_accounts(ORDER_STATE_DISCRIMINATOR)
        orders = [project_order(pubkey, data) for pubkey, data in accounts]
        logger.info("Fetched %d order accounts", len(orders))
        return orders

    async def list_all_orders(self) -> list[OrderData]:
        """All orders, or an empty list if the fetch failed (see `last_error`)."""
        try:
            orders = await self.fetch_all_orders()
        except Exception as e:
            logger.error("Failed to fetch all order states: %s: %s", type(e).__name__, e)
            self.last_error = e
            return []
        self.last_error = None
        return orders
