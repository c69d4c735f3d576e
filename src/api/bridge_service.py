from __future__ import annotations

import logging
from typing import Any, TYPE_CHECKING

from src.orders.reader import OrderStateReader
from src.orders.transitioner import OrderStateTransitioner

if TYPE_CHECKING:
    from src.ports.ledger import LedgerPort

logger = logging.getLogger(__name__)


class BridgeService:
    """
    Service context for the HTTP layer: one ledger binding plus the reader and
    transitioner built on it.

    Constructed once at startup and handed to the endpoints. Tests build one
    directly around a ledger double.
    """

    def __init__(self, ledger: LedgerPort) -> None:
        self.ledger = ledger
        self.reader = OrderStateReader(ledger)
        self.transitioner = OrderStateTransitioner(ledger)
        self._ready = True

    @classmethod
    def from_config(cls, cfg: dict[str, Any]) -> BridgeService:
        """Raises ConfigurationError when the keypair or ledger settings are unusable."""
        # Import lazily so unit tests can run without an RPC session.
        from src.ledger.client import LedgerClient

        return cls(LedgerClient.from_config(cfg))

    def is_ready(self) -> bool:
        return self._ready

    def describe(self) -> dict[str, Any]:
        return {
            "program_id": str(self.ledger.program_id),
            "admin": str(self.ledger.admin_pubkey),
        }

    async def stop(self) -> None:
        self._ready = False
        close = getattr(self.ledger, "close", None)
        if close is not None:
            await close()
        logger.info("Bridge service stopped")
