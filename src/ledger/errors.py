from __future__ import annotations


class LedgerError(Exception):
    """Base class for every failure surfaced by the ledger bridge."""


class ConfigurationError(LedgerError):
    """Keypair file or ledger settings are missing or malformed. Fatal at startup."""


class NetworkError(LedgerError):
    """RPC endpoint unreachable, transport failure, or confirmation timeout."""


class ValidationError(LedgerError):
    """Caller input was rejected before any network call was made."""


class ProgramRejection(LedgerError):
    """
    The on-chain program declined the instruction.

    `code` is the program error number when one could be extracted, `error_name`
    the Anchor error code name, and `logs` the program log lines from the
    simulation or the confirmed transaction.
    """

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        error_name: str | None = None,
        logs: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.error_name = error_name
        self.logs = list(logs or [])
