"""Error taxonomy shared by the ledger store, chain gateway and HTTP surface."""

from __future__ import annotations

from typing import Any


class TicketingError(RuntimeError):
    """Base error for ticketing issues. Uncaught instances surface as 500."""

    status_code: int = 500

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class TicketValidationError(TicketingError):
    """Raised when request input is missing or malformed."""

    status_code = 400


class InvalidAddressError(TicketValidationError):
    """Raised when a wallet address is not `0x` followed by 40 hex digits."""


class NotFoundError(TicketingError):
    status_code = 404


class TicketNotFoundError(NotFoundError):
    """Raised when no ticket exists for a token id."""


class EventNotFoundError(NotFoundError):
    """Raised when an event id is unknown."""


class PurchaseNotFoundError(NotFoundError):
    """Raised when a wallet holds no purchase for an event."""


class ConflictError(TicketingError):
    status_code = 400


class LedgerConflictError(ConflictError):
    """Raised by the ledger store when a token id is already recorded."""


class DuplicatePurchaseError(ConflictError):
    """Raised when a wallet already purchased a ticket for the event."""


class SoldOutError(ConflictError):
    """Raised when an event has no seats left."""


class SeatsExhaustedError(SoldOutError):
    """Raised by the ledger store when a seat increment would exceed capacity."""


class AlreadyCheckedInError(ConflictError):
    """Raised when a ticket has already been used."""


class TicketBurnedError(ConflictError):
    """Raised when a burned ticket is checked in or burned again."""


class InvalidTicketTransitionError(ConflictError):
    """Raised when a lifecycle transition is not allowed."""


class ServiceUnavailableError(TicketingError):
    """Raised when the chain gateway is not configured for mutating calls."""


class ChainError(TicketingError):
    """Base error for failures reported by the external ledger."""


class ChainUnavailableError(ChainError):
    """Raised when the remote network cannot be reached or timed out."""


class ChainRejectedError(ChainError):
    """Raised when a transaction reverted or the node refused it."""


class ChainTokenNotFoundError(ChainError):
    """Raised when the contract does not know the token id."""

    status_code = 404


class TicketRecordError(TicketingError):
    """Raised when a ticket minted on-chain could not be recorded locally."""
