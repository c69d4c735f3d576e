from __future__ import annotations

from typing import Protocol

from solders.instruction import Instruction
from solders.pubkey import Pubkey


class LedgerPort(Protocol):
    @property
    def program_id(self) -> Pubkey: ...

    @property
    def admin_pubkey(self) -> Pubkey: ...

    async def get_program_accounts(self, discriminator: bytes) -> list[tuple[Pubkey, bytes]]: ...

    async def send_and_confirm(self, instruction: Instruction) -> str: ...
