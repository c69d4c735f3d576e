from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Any

import base58
import httpx
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed, Finalized, Processed
from solana.rpc.core import RPCException, TransactionExpiredBlockheightExceededError, UnconfirmedTxError
from solana.rpc.types import MemcmpOpts, TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from src.ledger.errors import ConfigurationError, NetworkError, ProgramRejection

logger = logging.getLogger(__name__)

DEFAULT_COMMITMENT = "confirmed"
DEFAULT_CONFIRM_TIMEOUT_SECONDS = 60.0
DEFAULT_KEYPAIR_PATH = "~/.config/solana/id.json"
# Per-request HTTP timeout for the RPC session; confirmation has its own bound.
RPC_REQUEST_TIMEOUT_SECONDS = 30.0

_COMMITMENTS: dict[str, Commitment] = {
    "processed": Processed,
    "confirmed": Confirmed,
    "finalized": Finalized,
}

_ANCHOR_ERROR_RE = re.compile(r"Error Code: (\w+)\. Error Number: (\d+)")
_CUSTOM_ERROR_RE = re.compile(r"custom program error: (0x[0-9a-fA-F]+)")


def load_keypair(path: str | Path) -> Keypair:
    """
    Load a Solana CLI keypair file (JSON array of 64 secret-key bytes).

    Raises ConfigurationError for anything that is not a usable keypair.
    """
    full_path = Path(path).expanduser()
    if not full_path.exists():
        raise ConfigurationError(f"Keypair file not found: {full_path}")
    try:
        data = json.loads(full_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Keypair file {full_path} is not readable JSON: {e}") from e

    if not isinstance(data, list) or len(data) != 64:
        raise ConfigurationError(f"Keypair file {full_path} must hold a JSON array of 64 bytes")
    if not all(isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 255 for b in data):
        raise ConfigurationError(f"Keypair file {full_path} contains values outside 0..255")

    try:
        return Keypair.from_bytes(bytes(data))
    except ValueError as e:
        raise ConfigurationError(f"Keypair file {full_path} is not a valid secret key: {e}") from e


def parse_commitment(value: Any) -> Commitment:
    name = str(value or DEFAULT_COMMITMENT).strip().lower()
    if name not in _COMMITMENTS:
        raise ConfigurationError(f"Unsupported commitment level: {value!r} (use one of {', '.join(_COMMITMENTS)})")
    return _COMMITMENTS[name]


def parse_program_id(value: Any) -> Pubkey:
    try:
        return Pubkey.from_string(str(value).strip())
    except ValueError as e:
        raise ConfigurationError(f"Invalid program id {value!r}: {e}") from e


def _rejection_from(message: str, err: Any, logs: list[str]) -> ProgramRejection:
    code: int | None = None
    error_name: str | None = None

    # InstructionError(index, Custom(code)) carries the program error number.
    inner = getattr(err, "err", None)
    custom = getattr(inner, "code", None)
    if isinstance(custom, int):
        code = custom

    for line in logs:
        m = _ANCHOR_ERROR_RE.search(line)
        if m:
            error_name = m.group(1)
            code = int(m.group(2))
            break
        m = _CUSTOM_ERROR_RE.search(line)
        if m and code is None:
            code = int(m.group(1), 16)

    detail = f"{message}: {err}" if err is not None else message
    return ProgramRejection(detail, code=code, error_name=error_name, logs=logs)


class LedgerClient:
    """
    Process-wide binding to one RPC endpoint, one program and one admin signer.

    Built once at startup (see `from_config`) and shared by the reader and the
    transitioner. Nothing here is reconfigurable after construction.
    """

    def __init__(
        self,
        rpc_endpoint: str,
        program_id: Pubkey,
        admin: Keypair,
        *,
        commitment: str = DEFAULT_COMMITMENT,
        confirm_timeout_seconds: float = DEFAULT_CONFIRM_TIMEOUT_SECONDS,
        client: AsyncClient | None = None,
    ) -> None:
        if float(confirm_timeout_seconds) <= 0:
            raise ConfigurationError("confirm_timeout_seconds must be positive")

        self._rpc_endpoint = rpc_endpoint
        self._program_id = program_id
        self._admin = admin
        self._commitment = parse_commitment(commitment)
        self._confirm_timeout_seconds = float(confirm_timeout_seconds)
        self._client = client or AsyncClient(
            rpc_endpoint,
            commitment=self._commitment,
            timeout=RPC_REQUEST_TIMEOUT_SECONDS,
        )

    @classmethod
    def from_config(cls, cfg: dict[str, Any]) -> LedgerClient:
        ledger_cfg = cfg.get("ledger") or {}
        endpoint = str(ledger_cfg.get("rpc_endpoint") or "").strip()
        if not endpoint:
            raise ConfigurationError("Missing ledger.rpc_endpoint in config")

        program_id = parse_program_id(ledger_cfg.get("program_id"))
        admin = load_keypair(ledger_cfg.get("admin_keypair_path") or DEFAULT_KEYPAIR_PATH)

        try:
            timeout = float(ledger_cfg.get("confirm_timeout_seconds", DEFAULT_CONFIRM_TIMEOUT_SECONDS))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid ledger.confirm_timeout_seconds: {e}") from e

        client = cls(
            endpoint,
            program_id,
            admin,
            commitment=str(ledger_cfg.get("commitment") or DEFAULT_COMMITMENT),
            confirm_timeout_seconds=timeout,
        )
        logger.info("Ledger client bound to %s", endpoint)
        logger.info("  Program ID: %s", program_id)
        logger.info("  Admin Pubkey: %s", admin.pubkey())
        return client

    @property
    def program_id(self) -> Pubkey:
        return self._program_id

    @property
    def admin_pubkey(self) -> Pubkey:
        return self._admin.pubkey()

    @property
    def commitment(self) -> Commitment:
        return self._commitment

    @property
    def confirm_timeout_seconds(self) -> float:
        return self._confirm_timeout_seconds

    async def close(self) -> None:
        await self._client.close()

    async def get_program_accounts(self, discriminator: bytes) -> list[tuple[Pubkey, bytes]]:
        """Every program account whose data starts with `discriminator`."""
        try:
            resp = await self._client.get_program_accounts(
                self._program_id,
                commitment=self._commitment,
                encoding="base64",
                filters=[MemcmpOpts(offset=0, bytes=base58.b58encode(discriminator).decode("ascii"))],
            )
        except (SolanaRpcException, RPCException, httpx.HTTPError) as e:
            raise NetworkError(f"getProgramAccounts failed: {e}") from e
        return [(keyed.pubkey, bytes(keyed.account.data)) for keyed in resp.value]

    async def send_and_confirm(self, instruction: Instruction) -> str:
        """
        Sign `instruction` with the admin keypair (also fee payer), submit it and
        wait for confirmation at the configured commitment.

        Returns the base58 signature. Raises NetworkError or ProgramRejection.
        """
        try:
            blockhash_resp = await self._client.get_latest_blockhash(self._commitment)
        except (SolanaRpcException, RPCException, httpx.HTTPError) as e:
            raise NetworkError(f"getLatestBlockhash failed: {e}") from e
        blockhash = blockhash_resp.value.blockhash
        last_valid_block_height = blockhash_resp.value.last_valid_block_height

        message = Message.new_with_blockhash([instruction], self._admin.pubkey(), blockhash)
        tx = Transaction([self._admin], message, blockhash)

        opts = TxOpts(skip_confirmation=True, skip_preflight=False, preflight_commitment=self._commitment)
        try:
            send_resp = await self._client.send_raw_transaction(bytes(tx), opts=opts)
        except RPCException as e:
            detail = e.args[0] if e.args else e
            data = getattr(detail, "data", None)
            logs = list(getattr(data, "logs", None) or [])
            err = getattr(data, "err", None)
            if data is None:
                raise NetworkError(f"sendTransaction failed: {detail}") from e
            raise _rejection_from("Transaction simulation failed", err, logs) from e
        except (SolanaRpcException, httpx.HTTPError) as e:
            raise NetworkError(f"sendTransaction failed: {e}") from e

        signature = send_resp.value
        await self._confirm(signature, last_valid_block_height)
        return str(signature)

    async def _confirm(self, signature: Signature, last_valid_block_height: int) -> None:
        try:
            resp = await asyncio.wait_for(
                self._client.confirm_transaction(
                    signature,
                    commitment=self._commitment,
                    last_valid_block_height=last_valid_block_height,
                ),
                timeout=self._confirm_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise NetworkError(
                f"Transaction {signature} not confirmed within {self._confirm_timeout_seconds:g}s"
            ) from e
        except (TransactionExpiredBlockheightExceededError, UnconfirmedTxError) as e:
            raise NetworkError(f"Transaction {signature} was not confirmed: {e}") from e
        except (SolanaRpcException, RPCException, httpx.HTTPError) as e:
            raise NetworkError(f"Confirmation of {signature} failed: {e}") from e

        status = resp.value[0] if resp.value else None
        if status is not None and status.err is not None:
            logs = await self._transaction_logs(signature)
            raise _rejection_from(f"Transaction {signature} failed", status.err, logs)

    async def _transaction_logs(self, signature: Signature) -> list[str]:
        try:
            resp = await self._client.get_transaction(
                signature,
                commitment=Confirmed,
                max_supported_transaction_version=0,
            )
        except (SolanaRpcException, RPCException, httpx.HTTPError) as e:
            logger.warning("Could not fetch logs for %s: %s", signature, e)
            return []
        meta = getattr(getattr(resp.value, "transaction", None), "meta", None)
        return list(getattr(meta, "log_messages", None) or [])
