"""SQLModel table definitions for the ticketing ledger store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


class TicketTable(SQLModel, table=True):
    """Tickets minted by organizers, one row per token."""

    __tablename__ = "tickets"
    __table_args__ = (
        Index("ix_tickets_token_contract", "token_id", "contract_address"),
        Index("ix_tickets_owner_address", "owner_address"),
        Index("ix_tickets_status", "status"),
        Index("ix_tickets_event_date", "event_date"),
    )

    id: int | None = Field(default=None, primary_key=True)
    token_id: int = Field(sa_column=Column(BigInteger, nullable=False, unique=True))
    contract_address: str | None = Field(default=None, sa_column=Column(String(42), nullable=True))
    owner_address: str = Field(sa_column=Column(String(42), nullable=False))
    event_name: str = Field(sa_column=Column(String(255), nullable=False))
    event_date: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    event_location: str = Field(sa_column=Column(String(255), nullable=False))
    pre_metadata_uri: str = Field(sa_column=Column(Text, nullable=False))
    post_metadata_uri: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    original_price: float = Field(sa_column=Column(Float, nullable=False))
    status: str = Field(sa_column=Column(String(20), nullable=False))
    transaction_hash: str | None = Field(default=None, sa_column=Column(String(80), nullable=True))
    checked_in_by: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    minted_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    checked_in_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    burned_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketAuditLogTable(SQLModel, table=True):
    """Audit trail of ticket lifecycle transitions."""

    __tablename__ = "ticket_audit_logs"

    id: str = Field(primary_key=True, index=True)
    token_id: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    from_status: str | None = Field(default=None, sa_column=Column(String(20), nullable=True))
    to_status: str = Field(sa_column=Column(String(20), nullable=False))
    actor: str = Field(sa_column=Column(String(255), nullable=False))
    note: str = Field(sa_column=Column(Text, nullable=False))
    metadata_: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON, nullable=False)
    )
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class EventTable(SQLModel, table=True):
    """Purchasable events and their seat counters."""

    __tablename__ = "events"

    id: str = Field(primary_key=True)
    name: str = Field(sa_column=Column(String(255), nullable=False))
    type: str = Field(sa_column=Column(String(20), nullable=False))
    location: str = Field(sa_column=Column(String(255), nullable=False))
    date: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    price: float = Field(sa_column=Column(Float, nullable=False))
    max_seats: int = Field(sa_column=Column(Integer, nullable=False))
    booked_seats: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))


class PurchaseTable(SQLModel, table=True):
    """Wallet-flow purchases; one row per (wallet, event) pair."""

    __tablename__ = "ticket_purchases"
    __table_args__ = (UniqueConstraint("wallet_address", "event_id", name="uq_purchase_wallet_event"),)

    id: int | None = Field(default=None, primary_key=True)
    wallet_address: str = Field(sa_column=Column(String(42), nullable=False, index=True))
    event_id: str = Field(sa_column=Column(String(64), nullable=False))
    event_name: str = Field(sa_column=Column(String(255), nullable=False))
    event_type: str = Field(sa_column=Column(String(20), nullable=False))
    event_date: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    event_location: str = Field(sa_column=Column(String(255), nullable=False))
    status: str = Field(sa_column=Column(String(20), nullable=False))
    purchased_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    checked_in_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    nft_token_id: str | None = Field(default=None, sa_column=Column(String(80), nullable=True))
    nft_transaction_hash: str | None = Field(default=None, sa_column=Column(String(80), nullable=True))
    nft_metadata_uri: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    nft_mint_success: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    nft_block_number: int | None = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    mint_error: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
