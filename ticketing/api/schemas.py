from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ticketing.chain.gateway import ChainTokenInfo
from ticketing.tickets.models import (
    AttendeeRecord,
    Event,
    PurchaseRecord,
    PurchaseResult,
    Ticket,
    TicketAuditEntry,
    TicketStats,
)
from ticketing.tickets.state import PurchaseStatus, TicketStatus

DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    """Base schema rendering camelCase JSON while accepting snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(CamelModel, Generic[DataT]):
    success: bool = True
    message: str | None = None
    data: DataT | None = None


# Requests ---------------------------------------------------------------------
# Fields are optional so missing values reach the lifecycle manager, which reports
# every required field in one 400 response.


class MintTicketRequest(CamelModel):
    recipient_address: Any = None
    event_name: Any = None
    event_date: Any = None
    event_location: Any = None
    pre_metadata_uri: Any = Field(default=None, alias="preEventMetadataURI")
    original_price: Any = None


class TokenCheckInRequest(CamelModel):
    token_id: Any = None
    post_metadata_uri: Any = Field(default=None, alias="postEventMetadataURI")


class BurnTicketRequest(CamelModel):
    token_id: Any = None


class PurchaseRequest(CamelModel):
    event_id: str | int | None = None
    user_wallet_address: str | None = None


class WalletCheckInRequest(CamelModel):
    user_wallet_address: str | None = None
    event_id: str | int | None = None


# Responses --------------------------------------------------------------------


class TicketResponse(CamelModel):
    token_id: int
    contract_address: str | None
    owner_address: str
    event_name: str
    event_date: datetime
    event_location: str
    pre_metadata_uri: str = Field(alias="preEventMetadataURI")
    post_metadata_uri: str | None = Field(default=None, alias="postEventMetadataURI")
    original_price: float
    status: TicketStatus
    transaction_hash: str | None
    minted_at: datetime
    updated_at: datetime
    checked_in_at: datetime | None
    checked_in_by: str | None
    burned_at: datetime | None

    @classmethod
    def from_ticket(cls, ticket: Ticket) -> "TicketResponse":
        return cls(
            token_id=ticket.token_id,
            contract_address=ticket.contract_address,
            owner_address=ticket.owner_address,
            event_name=ticket.event_name,
            event_date=ticket.event_date,
            event_location=ticket.event_location,
            pre_metadata_uri=ticket.pre_metadata_uri,
            post_metadata_uri=ticket.post_metadata_uri,
            original_price=ticket.original_price,
            status=ticket.status,
            transaction_hash=ticket.transaction_hash,
            minted_at=ticket.minted_at,
            updated_at=ticket.updated_at,
            checked_in_at=ticket.checked_in_at,
            checked_in_by=ticket.checked_in_by,
            burned_at=ticket.burned_at,
        )


class TransactionInfo(CamelModel):
    transaction_hash: str
    block_number: int | None
    gas_used: int | None


class TicketTransactionData(CamelModel):
    token: TicketResponse
    blockchain: TransactionInfo


class ChainInfoResponse(CamelModel):
    token_id: int
    uri: str
    is_used: bool
    owner: str

    @classmethod
    def from_info(cls, info: ChainTokenInfo) -> "ChainInfoResponse":
        return cls(token_id=info.token_id, uri=info.uri, is_used=info.is_used, owner=info.owner)


class TicketDetailsData(CamelModel):
    token: TicketResponse
    blockchain: ChainInfoResponse | None


class OwnerTicketsData(CamelModel):
    owner: str
    tickets: list[TicketResponse]
    count: int


class DatabaseStats(CamelModel):
    total_tickets: int
    minted_tickets: int
    checked_in_tickets: int
    burned_tickets: int


class BlockchainStats(CamelModel):
    total_supply: int | None


class StatsData(CamelModel):
    database: DatabaseStats
    blockchain: BlockchainStats

    @classmethod
    def from_stats(cls, stats: TicketStats) -> "StatsData":
        return cls(
            database=DatabaseStats(
                total_tickets=stats.total_tickets,
                minted_tickets=stats.minted_tickets,
                checked_in_tickets=stats.checked_in_tickets,
                burned_tickets=stats.burned_tickets,
            ),
            blockchain=BlockchainStats(total_supply=stats.total_supply),
        )


class AuditEntryResponse(CamelModel):
    id: str
    token_id: int
    from_status: TicketStatus | None
    to_status: TicketStatus
    actor: str
    note: str
    metadata: dict[str, str]
    created_at: datetime

    @classmethod
    def from_entry(cls, entry: TicketAuditEntry) -> "AuditEntryResponse":
        return cls(
            id=entry.id,
            token_id=entry.token_id,
            from_status=entry.from_status,
            to_status=entry.to_status,
            actor=entry.actor,
            note=entry.note,
            metadata=dict(entry.metadata),
            created_at=entry.created_at,
        )


class EventResponse(CamelModel):
    id: str
    event_name: str
    event_type: str
    location: str
    date: datetime
    price: float
    max_seats: int
    booked_seats: int
    available_seats: int

    @classmethod
    def from_event(cls, event: Event) -> "EventResponse":
        return cls(
            id=event.id,
            event_name=event.name,
            event_type=event.type.value,
            location=event.location,
            date=event.date,
            price=event.price,
            max_seats=event.max_seats,
            booked_seats=event.booked_seats,
            available_seats=event.available_seats,
        )


class PurchaseRecordResponse(CamelModel):
    event_id: str
    event_name: str
    event_type: str
    event_date: datetime
    event_location: str
    status: PurchaseStatus
    purchase_date: datetime
    checked_in_at: datetime | None
    nft_token_id: str | None
    nft_transaction_hash: str | None
    nft_metadata_uri: str | None = Field(default=None, alias="nftMetadataURI")
    nft_mint_success: bool
    nft_block_number: int | None

    @classmethod
    def from_record(cls, record: PurchaseRecord) -> "PurchaseRecordResponse":
        return cls(
            event_id=record.event_id,
            event_name=record.event_name,
            event_type=record.event_type.value,
            event_date=record.event_date,
            event_location=record.event_location,
            status=record.status,
            purchase_date=record.purchased_at,
            checked_in_at=record.checked_in_at,
            nft_token_id=record.nft_token_id,
            nft_transaction_hash=record.nft_transaction_hash,
            nft_metadata_uri=record.nft_metadata_uri,
            nft_mint_success=record.nft_mint_success,
            nft_block_number=record.nft_block_number,
        )


class AttendeeResponse(CamelModel):
    wallet_address: str
    event_counts: dict[str, int]
    events_attended: dict[str, PurchaseRecordResponse]

    @classmethod
    def from_attendee(cls, attendee: AttendeeRecord) -> "AttendeeResponse":
        return cls(
            wallet_address=attendee.wallet_address,
            event_counts=dict(attendee.event_counts),
            events_attended={
                event_id: PurchaseRecordResponse.from_record(record)
                for event_id, record in attendee.purchases.items()
            },
        )


class PurchaseData(CamelModel):
    transaction_hash: str
    token_id: str
    nft_mint_success: bool
    mint_error: str | None
    event: EventResponse
    attendee: AttendeeResponse | None

    @classmethod
    def from_result(cls, result: PurchaseResult) -> "PurchaseData":
        return cls(
            transaction_hash=result.transaction_hash,
            token_id=result.token_id,
            nft_mint_success=result.mint_success,
            mint_error=result.mint_error,
            event=EventResponse.from_event(result.event),
            attendee=None if result.attendee is None else AttendeeResponse.from_attendee(result.attendee),
        )


class UserTicketEvent(CamelModel):
    id: str
    name: str
    date: datetime
    location: str


class UserTicketResponse(CamelModel):
    token_id: str
    event_id: str
    event: UserTicketEvent
    status: PurchaseStatus
    purchase_date: datetime
    checked_in_at: datetime | None
    nft_transaction_hash: str | None
    nft_mint_success: bool
    nft_block_number: int | None

    @classmethod
    def from_record(cls, record: PurchaseRecord) -> "UserTicketResponse":
        return cls(
            token_id=record.nft_token_id or record.event_id,
            event_id=record.event_id,
            event=UserTicketEvent(
                id=record.event_id,
                name=record.event_name,
                date=record.event_date,
                location=record.event_location,
            ),
            status=record.status,
            purchase_date=record.purchased_at,
            checked_in_at=record.checked_in_at,
            nft_transaction_hash=record.nft_transaction_hash,
            nft_mint_success=record.nft_mint_success,
            nft_block_number=record.nft_block_number,
        )


class WalletCheckInData(CamelModel):
    user_name: str = "Attendee"
    status: PurchaseStatus
    token_id: str
    checked_in_at: datetime
    metadata_updated: bool


class WalletConnectionData(CamelModel):
    address: str
    network: str


class WalletStatusData(CamelModel):
    initialized: bool
    connected: bool
    provider: bool
    signer: bool


class WalletAddressData(CamelModel):
    address: str


class WalletBalanceData(CamelModel):
    balance: str
    currency: str = "ETH"
    network: str
