from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ticketing.chain.gateway import ChainTokenInfo

from .state import PurchaseStatus, TicketStatus


class EventType(str, Enum):
    """Categories an event can be listed under."""

    TECH = "tech"
    MUSIC = "music"
    DANCE = "dance"
    ART = "art"
    SPORTS = "sports"
    WORKSHOP = "workshop"


@dataclass(slots=True)
class Ticket:
    """Admission right minted by an organizer and recorded in the ledger store."""

    token_id: int
    contract_address: str | None
    owner_address: str
    event_name: str
    event_date: datetime
    event_location: str
    pre_metadata_uri: str
    original_price: float
    status: TicketStatus
    minted_at: datetime
    updated_at: datetime
    transaction_hash: str | None = None
    post_metadata_uri: str | None = None
    checked_in_at: datetime | None = None
    checked_in_by: str | None = None
    burned_at: datetime | None = None


@dataclass(slots=True)
class TicketAuditEntry:
    """History entry describing a lifecycle change for a ticket."""

    id: str
    token_id: int
    from_status: TicketStatus | None
    to_status: TicketStatus
    actor: str
    note: str
    created_at: datetime
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class Event:
    """Purchasable occasion with a fixed seat capacity."""

    id: str
    name: str
    type: EventType
    location: str
    date: datetime
    price: float
    max_seats: int
    booked_seats: int = 0

    @property
    def available_seats(self) -> int:
        return max(self.max_seats - self.booked_seats, 0)

    @property
    def is_sold_out(self) -> bool:
        return self.booked_seats >= self.max_seats


@dataclass(slots=True)
class PurchaseRecord:
    """A wallet's ticket for one event, including its NFT linkage."""

    wallet_address: str
    event_id: str
    event_name: str
    event_type: EventType
    event_date: datetime
    event_location: str
    status: PurchaseStatus
    purchased_at: datetime
    checked_in_at: datetime | None = None
    nft_token_id: str | None = None
    nft_transaction_hash: str | None = None
    nft_metadata_uri: str | None = None
    nft_mint_success: bool = False
    nft_block_number: int | None = None
    mint_error: str | None = None


@dataclass(slots=True)
class AttendeeRecord:
    """All purchases of one wallet keyed by event id, plus counts per event type."""

    wallet_address: str
    purchases: dict[str, PurchaseRecord] = field(default_factory=dict)
    event_counts: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class PurchaseResult:
    transaction_hash: str
    token_id: str
    event: Event
    attendee: AttendeeRecord
    purchase: PurchaseRecord
    mint_success: bool
    mint_error: str | None = None


@dataclass(slots=True)
class CheckInResult:
    wallet_address: str
    event_id: str
    token_id: str
    status: PurchaseStatus
    checked_in_at: datetime
    metadata_updated: bool


@dataclass(slots=True)
class MintedTicket:
    ticket: Ticket
    transaction_hash: str
    block_number: int | None
    gas_used: int | None


@dataclass(slots=True)
class CheckedInTicket:
    ticket: Ticket
    transaction_hash: str
    block_number: int | None
    gas_used: int | None


@dataclass(slots=True)
class BurnedTicket:
    ticket: Ticket
    transaction_hash: str
    block_number: int | None
    gas_used: int | None


@dataclass(slots=True)
class TicketDetails:
    ticket: Ticket
    chain_info: ChainTokenInfo | None = None


@dataclass(slots=True)
class TicketStats:
    """Per-status counts from the ledger store and the chain's total supply."""

    total_tickets: int
    minted_tickets: int
    checked_in_tickets: int
    burned_tickets: int
    total_supply: int | None = None
