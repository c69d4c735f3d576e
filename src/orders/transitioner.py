from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, TYPE_CHECKING

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from src.domain.models import OrderStatus, TransitionResult
from src.ledger.addresses import find_config_address, find_order_address, normalise_trade_id
from src.ledger.errors import LedgerError, ProgramRejection, ValidationError
from src.ledger.layout import encode_set_order_state

if TYPE_CHECKING:
    from src.ports.ledger import LedgerPort

logger = logging.getLogger(__name__)


def build_set_order_state_instruction(
    program_id: Pubkey,
    admin: Pubkey,
    trade_id: int,
    new_status: OrderStatus,
) -> Instruction:
    """
    Account order matches the program's SetOrderState context:
    admin (signer, fee payer), order state (mutated), config (authority check).
    """
    order_address, _ = find_order_address(program_id, trade_id)
    config_address, _ = find_config_address(program_id)
    accounts = [
        AccountMeta(pubkey=admin, is_signer=True, is_writable=True),
        AccountMeta(pubkey=order_address, is_signer=False, is_writable=True),
        AccountMeta(pubkey=config_address, is_signer=False, is_writable=False),
    ]
    return Instruction(program_id, encode_set_order_state(trade_id, int(new_status)), accounts)


class _KeyedLocks:
    """One asyncio.Lock per key, dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, key: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class OrderStateTransitioner:
    """
    Submits admin-signed `set_order_state` instructions.

    The program owns the state machine; an illegal transition or a signer that
    is not the registered admin comes back as a ProgramRejection. Transitions
    for the same trade id run one at a time.
    """

    def __init__(self, ledger: LedgerPort) -> None:
        self._ledger = ledger
        self._locks = _KeyedLocks()

    async def set_order_state(self, trade_id: Any, new_status: Any) -> str | None:
        """Signature of the confirmed transaction, or None if the transition did not happen."""
        result = await self.transition(trade_id, new_status)
        return result.signature if result.ok else None

    async def transition(self, trade_id: Any, new_status: Any) -> TransitionResult:
        try:
            status = OrderStatus.parse(new_status)
        except ValueError as e:
            logger.warning("Rejected state change for trade %s: %s", trade_id, e)
            return TransitionResult(error=ValidationError(str(e)))
        try:
            tid = normalise_trade_id(trade_id)
        except ValidationError as e:
            logger.warning("Rejected state change: %s", e)
            return TransitionResult(error=e)

        logger.info("Admin setting state for %s to %s", tid, status.name)

        async with self._locks.hold(tid):
            instruction = build_set_order_state_instruction(
                self._ledger.program_id, self._ledger.admin_pubkey, tid, status
            )
            try:
                signature = await self._ledger.send_and_confirm(instruction)
            except LedgerError as e:
                self._log_failure(tid, e)
                return TransitionResult(error=e)
            except Exception as e:
                logger.error("Failed to set order state for %s: %s: %s", tid, type(e).__name__, e, exc_info=True)
                return TransitionResult(error=LedgerError(f"{type(e).__name__}: {e}"))

        logger.info("Set state successful. Tx: %s", signature)
        return TransitionResult(signature=signature)

    @staticmethod
    def _log_failure(trade_id: int, error: LedgerError) -> None:
        logger.error("Failed to set order state for %s: %s: %s", trade_id, type(error).__name__, error)
        if isinstance(error, ProgramRejection):
            logger.error("Program error: code=%s name=%s", error.code, error.error_name)
            for line in error.logs:
                logger.error("  %s", line)
