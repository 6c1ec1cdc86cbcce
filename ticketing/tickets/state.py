from __future__ import annotations

from enum import Enum

from ticketing.errors import AlreadyCheckedInError, InvalidTicketTransitionError, TicketBurnedError


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    MINTED = "minted"
    CHECKED_IN = "checked_in"
    BURNED = "burned"


class PurchaseStatus(str, Enum):
    """Status labels of wallet-flow purchases, as shown to attendees."""

    TO_BE_ATTENDED = "toBeAttended"
    ATTENDED = "Attended"
    BURNED = "burned"

    @property
    def lifecycle(self) -> TicketStatus:
        return _PURCHASE_LIFECYCLE[self]


_PURCHASE_LIFECYCLE: dict[PurchaseStatus, TicketStatus] = {
    PurchaseStatus.TO_BE_ATTENDED: TicketStatus.MINTED,
    PurchaseStatus.ATTENDED: TicketStatus.CHECKED_IN,
    PurchaseStatus.BURNED: TicketStatus.BURNED,
}


class TicketStateMachine:
    """Validate ticket lifecycle transitions."""

    _TRANSITIONS: dict[TicketStatus, set[TicketStatus]] = {
        TicketStatus.MINTED: {TicketStatus.CHECKED_IN, TicketStatus.BURNED},
        TicketStatus.CHECKED_IN: {TicketStatus.BURNED},
        TicketStatus.BURNED: set(),
    }

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.MINTED

    @classmethod
    def can_transition(cls, current: TicketStatus, new: TicketStatus) -> bool:
        return new in cls._TRANSITIONS.get(current, set())

    @classmethod
    def assert_transition(cls, current: TicketStatus, new: TicketStatus) -> None:
        """Raise the domain error matching why `current -> new` is refused."""

        if cls.can_transition(current, new):
            return
        if current == TicketStatus.BURNED:
            raise TicketBurnedError("Ticket has been burned and cannot be used")
        if current == TicketStatus.CHECKED_IN and new == TicketStatus.CHECKED_IN:
            raise AlreadyCheckedInError("Ticket has already been checked in")
        raise InvalidTicketTransitionError(f"Invalid ticket status transition: {current.value} -> {new.value}")
