from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, NoReturn

from ledgertest.structured_logging import log_event


@dataclass
class HarnessError(Exception):
    """Canonical recoverable error: test code may catch and assert on it."""

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


class UnsupportedDecimals(HarnessError):
    def __init__(self, decimals: Any) -> None:
        super().__init__("unsupported_decimals", f"received unsupported decimals: {decimals}", {"decimals": decimals})
        self.decimals = decimals


class InvalidGenesisOverrideType(HarnessError):
    """Override value does not match what the module's setter expects."""

    def __init__(self, module: str, received: Any) -> None:
        received_type = type(received).__name__
        super().__init__(
            "invalid_genesis_override",
            f"invalid type {received_type} for {module} module genesis state",
            {"module": module, "received_type": received_type},
        )
        self.module = module
        self.received_type = received_type


class AddressCodecError(HarnessError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("address_codec", reason, details)


class AppError(HarnessError):
    """Raised by the ledger application during init_chain / finalize / commit."""


class ChainNotFound(HarnessError):
    def __init__(self, chain_id: str) -> None:
        super().__init__("chain_not_found", f"chain {chain_id} not found", {"chain_id": chain_id})
        self.chain_id = chain_id


class HandshakeError(HarnessError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("handshake", reason, details)


class FatalSetupError(SystemExit):
    """Test-harness misconfiguration.

    Derives from SystemExit so `except Exception` never masks it; uncaught it
    stops the interpreter with status 1 and the message on stderr.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


def abort_setup(logger: logging.Logger, message: str, **fields: Any) -> NoReturn:
    log_event(logger, "setup_aborted", level=logging.CRITICAL, message=message, **fields)
    raise FatalSetupError(message)
