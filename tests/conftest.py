import asyncio
from typing import Any

import pytest
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from src.domain.models import OrderStatus, PaymentMode
from src.ledger.addresses import find_config_address, find_order_address
from src.ledger.errors import NetworkError, ProgramRejection
from src.ledger.layout import decode_set_order_state, encode_order_state

PROGRAM_ID = Pubkey.from_string("EHxoxzqUShPuJbcSVFvqAVizLJxUpENTKnMBUGKSgQkc")


class InMemoryLedger:
    """
    Ledger double holding order accounts in memory and applying
    set_order_state the way the program does: admin check against the
    config account, order must exist, same-order submissions must not overlap.
    """

    def __init__(self, admin: Keypair | None = None, registered_admin: Pubkey | None = None) -> None:
        self.admin = admin or Keypair()
        self.registered_admin = registered_admin or self.admin.pubkey()
        self.orders: dict[int, dict[str, Any]] = {}
        self.sent: list[Instruction] = []
        self.read_error: Exception | None = None
        self.send_error: Exception | None = None
        self.extra_accounts: list[tuple[Pubkey, bytes]] = []
        self.send_delay = 0.0
        self._in_flight: set[Pubkey] = set()
        self.clock = 1_700_000_000

    @property
    def program_id(self) -> Pubkey:
        return PROGRAM_ID

    @property
    def admin_pubkey(self) -> Pubkey:
        return self.admin.pubkey()

    def add_order(self, trade_id: int, status: OrderStatus = OrderStatus.Created, **overrides: Any) -> Pubkey:
        fields = {
            "buyer": bytes(Keypair().pubkey()),
            "seller": bytes(Keypair().pubkey()),
            "mint": bytes(Keypair().pubkey()),
            "trade_id": trade_id,
            "order_amount": 15_000_000,
            "paid_amount": 0,
            "claimed_amount": 0,
            "payment_mode": int(PaymentMode.Full),
            "advance_percentage": 0,
            "status": int(status),
            "created_at": self.clock,
            "paid_at": 0,
            "shipped_at": 0,
            "confirmed_at": 0,
            "completed_at": 0,
            "bump": find_order_address(PROGRAM_ID, trade_id)[1],
        }
        fields.update(overrides)
        self.orders[trade_id] = fields
        return find_order_address(PROGRAM_ID, trade_id)[0]

    async def get_program_accounts(self, discriminator: bytes) -> list[tuple[Pubkey, bytes]]:
        if self.read_error is not None:
            raise self.read_error
        accounts = [
            (find_order_address(PROGRAM_ID, tid)[0], encode_order_state(fields))
            for tid, fields in self.orders.items()
        ]
        accounts.extend(self.extra_accounts)
        return [(k, data) for k, data in accounts if data.startswith(discriminator)]

    async def send_and_confirm(self, instruction: Instruction) -> str:
        self.sent.append(instruction)
        if self.send_error is not None:
            raise self.send_error

        admin, order, config = (meta.pubkey for meta in instruction.accounts)
        if config != find_config_address(PROGRAM_ID)[0]:
            raise ProgramRejection("config mismatch", code=2006, error_name="ConstraintSeeds")
        if admin != self.registered_admin:
            raise ProgramRejection(
                "signer is not the registered admin",
                code=6000,
                error_name="Unauthorized",
                logs=[
                    "Program EHxoxzqUShPuJbcSVFvqAVizLJxUpENTKnMBUGKSgQkc invoke [1]",
                    "Program log: AnchorError occurred. Error Code: Unauthorized. Error Number: 6000. "
                    "Error Message: Signer is not the admin.",
                ],
            )

        args = decode_set_order_state(bytes(instruction.data))
        if args.trade_id not in self.orders or order != find_order_address(PROGRAM_ID, args.trade_id)[0]:
            raise ProgramRejection("order account not initialised", code=3012, error_name="AccountNotInitialized")

        if order in self._in_flight:
            raise ProgramRejection("order account was modified by a concurrent transaction")
        self._in_flight.add(order)
        try:
            await asyncio.sleep(self.send_delay)
            self.clock += 1
            fields = self.orders[args.trade_id]
            fields["status"] = args.new_status
            if args.new_status == OrderStatus.Shipped:
                fields["shipped_at"] = self.clock
        finally:
            self._in_flight.discard(order)
        return str(Signature.new_unique())


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def foreign_admin_ledger() -> InMemoryLedger:
    # Signer differs from the admin registered in the config account.
    return InMemoryLedger(registered_admin=Keypair().pubkey())


@pytest.fixture
def network_down() -> NetworkError:
    return NetworkError("connection refused")
