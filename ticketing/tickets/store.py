from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Protocol, Sequence

from ticketing.errors import DuplicatePurchaseError, LedgerConflictError, SeatsExhaustedError

from .models import AttendeeRecord, Event, PurchaseRecord, Ticket, TicketAuditEntry
from .state import TicketStatus

TICKET_UPDATE_FIELDS = frozenset({"post_metadata_uri", "checked_in_at", "checked_in_by", "burned_at"})


class LedgerStore(Protocol):
    """Storage contract shared by the in-memory and SQL ledger stores.

    Lookups return ``None`` for unknown keys. The store does not enforce lifecycle
    rules; callers validate transitions before calling `update_ticket_status`.
    """

    async def ensure_schema(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def insert_ticket(self, ticket: Ticket) -> Ticket:
        ...

    async def find_ticket(self, token_id: int) -> Ticket | None:
        ...

    async def update_ticket_status(self, token_id: int, status: TicketStatus, **fields: Any) -> Ticket | None:
        ...

    async def find_tickets_by_owner(self, address: str) -> list[Ticket]:
        ...

    async def count_tickets_by_status(self) -> dict[TicketStatus, int]:
        ...

    async def add_audit_entry(self, entry: TicketAuditEntry) -> None:
        ...

    async def get_audit_log(self, token_id: int) -> list[TicketAuditEntry]:
        ...

    async def insert_event(self, event: Event) -> Event:
        ...

    async def get_event(self, event_id: str) -> Event | None:
        ...

    async def list_events(self) -> list[Event]:
        ...

    async def increment_booked_seats(self, event_id: str) -> Event | None:
        ...

    async def get_attendee(self, wallet_address: str) -> AttendeeRecord | None:
        ...

    async def get_purchase(self, wallet_address: str, event_id: str) -> PurchaseRecord | None:
        ...

    async def add_purchase(self, record: PurchaseRecord) -> AttendeeRecord:
        ...

    async def update_purchase(self, record: PurchaseRecord) -> PurchaseRecord | None:
        ...

    async def list_purchases(self, wallet_address: str) -> list[PurchaseRecord]:
        ...


def check_update_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - TICKET_UPDATE_FIELDS
    if unknown:
        raise ValueError(f"Unsupported ticket fields: {', '.join(sorted(unknown))}")


class InMemoryLedgerStore:
    """Dictionary-backed ledger store used in demo mode and tests.

    Every mutation completes without yielding to the event loop, so each call is
    atomic with respect to other coroutines. Callers receive copies.
    """

    def __init__(self) -> None:
        self._tickets: dict[int, Ticket] = {}
        self._audit: dict[int, list[TicketAuditEntry]] = {}
        self._events: dict[str, Event] = {}
        self._attendees: dict[str, AttendeeRecord] = {}

    async def ensure_schema(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def insert_ticket(self, ticket: Ticket) -> Ticket:
        if ticket.token_id in self._tickets:
            raise LedgerConflictError(f"Ticket {ticket.token_id} already recorded")
        self._tickets[ticket.token_id] = replace(ticket, owner_address=ticket.owner_address.lower())
        return replace(self._tickets[ticket.token_id])

    async def find_ticket(self, token_id: int) -> Ticket | None:
        ticket = self._tickets.get(token_id)
        return None if ticket is None else replace(ticket)

    async def update_ticket_status(self, token_id: int, status: TicketStatus, **fields: Any) -> Ticket | None:
        check_update_fields(fields)
        ticket = self._tickets.get(token_id)
        if ticket is None:
            return None
        updated = replace(ticket, status=status, updated_at=datetime.now(timezone.utc), **fields)
        self._tickets[token_id] = updated
        return replace(updated)

    async def find_tickets_by_owner(self, address: str) -> list[Ticket]:
        owner = address.lower()
        return [replace(ticket) for ticket in self._tickets.values() if ticket.owner_address == owner]

    async def count_tickets_by_status(self) -> dict[TicketStatus, int]:
        counts = {status: 0 for status in TicketStatus}
        for ticket in self._tickets.values():
            counts[ticket.status] += 1
        return counts

    async def add_audit_entry(self, entry: TicketAuditEntry) -> None:
        self._audit.setdefault(entry.token_id, []).append(replace(entry))

    async def get_audit_log(self, token_id: int) -> list[TicketAuditEntry]:
        return [replace(entry) for entry in self._audit.get(token_id, [])]

    async def insert_event(self, event: Event) -> Event:
        if event.id in self._events:
            raise LedgerConflictError(f"Event {event.id} already recorded")
        self._events[event.id] = replace(event)
        return replace(event)

    async def get_event(self, event_id: str) -> Event | None:
        event = self._events.get(event_id)
        return None if event is None else replace(event)

    async def list_events(self) -> list[Event]:
        return [replace(event) for event in self._events.values()]

    async def increment_booked_seats(self, event_id: str) -> Event | None:
        event = self._events.get(event_id)
        if event is None:
            return None
        if event.booked_seats >= event.max_seats:
            raise SeatsExhaustedError("All seats for this event have been booked.")
        event.booked_seats += 1
        return replace(event)

    async def get_attendee(self, wallet_address: str) -> AttendeeRecord | None:
        attendee = self._attendees.get(wallet_address.lower())
        return None if attendee is None else _copy_attendee(attendee)

    async def get_purchase(self, wallet_address: str, event_id: str) -> PurchaseRecord | None:
        attendee = self._attendees.get(wallet_address.lower())
        if attendee is None:
            return None
        record = attendee.purchases.get(event_id)
        return None if record is None else replace(record)

    async def add_purchase(self, record: PurchaseRecord) -> AttendeeRecord:
        wallet = record.wallet_address.lower()
        attendee = self._attendees.get(wallet)
        if attendee is None:
            attendee = AttendeeRecord(wallet_address=wallet)
            self._attendees[wallet] = attendee
        elif record.event_id in attendee.purchases:
            raise DuplicatePurchaseError("You have already purchased a ticket for this event.")
        attendee.purchases[record.event_id] = replace(record, wallet_address=wallet)
        event_type = record.event_type.value
        attendee.event_counts[event_type] = attendee.event_counts.get(event_type, 0) + 1
        return _copy_attendee(attendee)

    async def update_purchase(self, record: PurchaseRecord) -> PurchaseRecord | None:
        attendee = self._attendees.get(record.wallet_address.lower())
        if attendee is None or record.event_id not in attendee.purchases:
            return None
        attendee.purchases[record.event_id] = replace(record, wallet_address=attendee.wallet_address)
        return replace(attendee.purchases[record.event_id])

    async def list_purchases(self, wallet_address: str) -> list[PurchaseRecord]:
        attendee = self._attendees.get(wallet_address.lower())
        if attendee is None:
            return []
        return [replace(record) for record in attendee.purchases.values()]


def _copy_attendee(attendee: AttendeeRecord) -> AttendeeRecord:
    return AttendeeRecord(
        wallet_address=attendee.wallet_address,
        purchases={event_id: replace(record) for event_id, record in attendee.purchases.items()},
        event_counts=dict(attendee.event_counts),
    )


def summarise_purchases(records: Sequence[PurchaseRecord]) -> dict[str, int]:
    """Count purchases per event type."""

    counts: dict[str, int] = {}
    for record in records:
        counts[record.event_type.value] = counts.get(record.event_type.value, 0) + 1
    return counts
