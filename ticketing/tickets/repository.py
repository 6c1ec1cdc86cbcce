from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, col, select

from packages.db.models import EventTable, PurchaseTable, TicketAuditLogTable, TicketTable
from ticketing.errors import DuplicatePurchaseError, LedgerConflictError, SeatsExhaustedError

from .models import AttendeeRecord, Event, EventType, PurchaseRecord, Ticket, TicketAuditEntry
from .state import PurchaseStatus, TicketStatus
from .store import check_update_fields, summarise_purchases


class SqlLedgerStore:
    """Persistence helper wrapping `tickets`, `events`, purchases and audit logs."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    async def insert_ticket(self, ticket: Ticket) -> Ticket:
        row = TicketTable(
            token_id=ticket.token_id,
            contract_address=ticket.contract_address,
            owner_address=ticket.owner_address.lower(),
            event_name=ticket.event_name,
            event_date=ticket.event_date,
            event_location=ticket.event_location,
            pre_metadata_uri=ticket.pre_metadata_uri,
            post_metadata_uri=ticket.post_metadata_uri,
            original_price=ticket.original_price,
            status=ticket.status.value,
            transaction_hash=ticket.transaction_hash,
            checked_in_by=ticket.checked_in_by,
            minted_at=ticket.minted_at,
            checked_in_at=ticket.checked_in_at,
            burned_at=ticket.burned_at,
            updated_at=ticket.updated_at,
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(row)
        except IntegrityError as exc:
            raise LedgerConflictError(f"Ticket {ticket.token_id} already recorded") from exc
        return self._table_to_ticket(row)

    async def find_ticket(self, token_id: int) -> Ticket | None:
        async with self._session_factory() as session:
            row = await self._select_ticket(session, token_id)
            return None if row is None else self._table_to_ticket(row)

    async def update_ticket_status(self, token_id: int, status: TicketStatus, **fields: Any) -> Ticket | None:
        check_update_fields(fields)
        async with self._session_factory() as session:
            row = await self._select_ticket(session, token_id)
            if row is None:
                return None
            row.status = status.value
            for name, value in fields.items():
                setattr(row, name, value)
            row.updated_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(row)
            return self._table_to_ticket(row)

    async def find_tickets_by_owner(self, address: str) -> list[Ticket]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketTable)
                .where(TicketTable.owner_address == address.lower())
                .order_by(col(TicketTable.id).asc())
            )
            return [self._table_to_ticket(row) for row in result.scalars().all()]

    async def count_tickets_by_status(self) -> dict[TicketStatus, int]:
        counts = {status: 0 for status in TicketStatus}
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketTable.status, func.count()).group_by(TicketTable.status)
            )
            for status, count in result.all():
                counts[TicketStatus(status)] = int(count)
        return counts

    async def add_audit_entry(self, entry: TicketAuditEntry) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    TicketAuditLogTable(
                        id=entry.id,
                        token_id=entry.token_id,
                        from_status=entry.from_status.value if entry.from_status else None,
                        to_status=entry.to_status.value,
                        actor=entry.actor,
                        note=entry.note,
                        metadata_=dict(entry.metadata),
                        created_at=entry.created_at,
                    )
                )

    async def get_audit_log(self, token_id: int) -> list[TicketAuditEntry]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketAuditLogTable)
                .where(TicketAuditLogTable.token_id == token_id)
                .order_by(col(TicketAuditLogTable.created_at).asc())
            )
            return [self._table_to_audit(row) for row in result.scalars().all()]

    async def insert_event(self, event: Event) -> Event:
        row = EventTable(
            id=event.id,
            name=event.name,
            type=event.type.value,
            location=event.location,
            date=event.date,
            price=event.price,
            max_seats=event.max_seats,
            booked_seats=event.booked_seats,
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(row)
        except IntegrityError as exc:
            raise LedgerConflictError(f"Event {event.id} already recorded") from exc
        return self._table_to_event(row)

    async def get_event(self, event_id: str) -> Event | None:
        async with self._session_factory() as session:
            row = await session.get(EventTable, event_id)
            return None if row is None else self._table_to_event(row)

    async def list_events(self) -> list[Event]:
        async with self._session_factory() as session:
            result = await session.execute(select(EventTable).order_by(col(EventTable.date).asc()))
            return [self._table_to_event(row) for row in result.scalars().all()]

    async def increment_booked_seats(self, event_id: str) -> Event | None:
        # single conditional UPDATE so concurrent buyers cannot oversell
        statement = (
            update(EventTable)
            .where(col(EventTable.id) == event_id, col(EventTable.booked_seats) < col(EventTable.max_seats))
            .values(booked_seats=col(EventTable.booked_seats) + 1)
        )
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(statement)
                row = await session.get(EventTable, event_id, populate_existing=True)
                if row is None:
                    return None
                if result.rowcount == 0:
                    raise SeatsExhaustedError("All seats for this event have been booked.")
                return self._table_to_event(row)

    async def get_attendee(self, wallet_address: str) -> AttendeeRecord | None:
        purchases = await self.list_purchases(wallet_address)
        if not purchases:
            return None
        return AttendeeRecord(
            wallet_address=wallet_address.lower(),
            purchases={record.event_id: record for record in purchases},
            event_counts=summarise_purchases(purchases),
        )

    async def get_purchase(self, wallet_address: str, event_id: str) -> PurchaseRecord | None:
        async with self._session_factory() as session:
            row = await self._select_purchase(session, wallet_address, event_id)
            return None if row is None else self._table_to_purchase(row)

    async def add_purchase(self, record: PurchaseRecord) -> AttendeeRecord:
        row = PurchaseTable(wallet_address=record.wallet_address.lower(), event_id=record.event_id)
        self._apply_purchase(row, record)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(row)
        except IntegrityError as exc:
            raise DuplicatePurchaseError("You have already purchased a ticket for this event.") from exc
        attendee = await self.get_attendee(record.wallet_address)
        if attendee is None:
            raise RuntimeError("Failed to insert purchase")
        return attendee

    async def update_purchase(self, record: PurchaseRecord) -> PurchaseRecord | None:
        async with self._session_factory() as session:
            row = await self._select_purchase(session, record.wallet_address, record.event_id)
            if row is None:
                return None
            self._apply_purchase(row, record)
            await session.commit()
            await session.refresh(row)
            return self._table_to_purchase(row)

    async def list_purchases(self, wallet_address: str) -> list[PurchaseRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PurchaseTable)
                .where(PurchaseTable.wallet_address == wallet_address.lower())
                .order_by(col(PurchaseTable.id).asc())
            )
            return [self._table_to_purchase(row) for row in result.scalars().all()]

    @staticmethod
    async def _select_ticket(session: AsyncSession, token_id: int) -> TicketTable | None:
        result = await session.execute(select(TicketTable).where(TicketTable.token_id == token_id))
        return result.scalars().first()

    @staticmethod
    async def _select_purchase(session: AsyncSession, wallet_address: str, event_id: str) -> PurchaseTable | None:
        result = await session.execute(
            select(PurchaseTable).where(
                PurchaseTable.wallet_address == wallet_address.lower(),
                PurchaseTable.event_id == event_id,
            )
        )
        return result.scalars().first()

    @staticmethod
    def _apply_purchase(row: PurchaseTable, record: PurchaseRecord) -> None:
        row.event_name = record.event_name
        row.event_type = record.event_type.value
        row.event_date = record.event_date
        row.event_location = record.event_location
        row.status = record.status.value
        row.purchased_at = record.purchased_at
        row.checked_in_at = record.checked_in_at
        row.nft_token_id = record.nft_token_id
        row.nft_transaction_hash = record.nft_transaction_hash
        row.nft_metadata_uri = record.nft_metadata_uri
        row.nft_mint_success = record.nft_mint_success
        row.nft_block_number = record.nft_block_number
        row.mint_error = record.mint_error

    @staticmethod
    def _table_to_ticket(row: TicketTable) -> Ticket:
        return Ticket(
            token_id=int(row.token_id),
            contract_address=row.contract_address,
            owner_address=row.owner_address,
            event_name=row.event_name,
            event_date=_ensure_datetime(row.event_date),
            event_location=row.event_location,
            pre_metadata_uri=row.pre_metadata_uri,
            original_price=float(row.original_price),
            status=TicketStatus(row.status),
            minted_at=_ensure_datetime(row.minted_at),
            updated_at=_ensure_datetime(row.updated_at),
            transaction_hash=row.transaction_hash,
            post_metadata_uri=row.post_metadata_uri,
            checked_in_at=_optional_datetime(row.checked_in_at),
            checked_in_by=row.checked_in_by,
            burned_at=_optional_datetime(row.burned_at),
        )

    @staticmethod
    def _table_to_audit(row: TicketAuditLogTable) -> TicketAuditEntry:
        return TicketAuditEntry(
            id=row.id,
            token_id=int(row.token_id),
            from_status=TicketStatus(row.from_status) if row.from_status else None,
            to_status=TicketStatus(row.to_status),
            actor=row.actor,
            note=row.note,
            metadata=dict(row.metadata_ or {}),
            created_at=_ensure_datetime(row.created_at),
        )

    @staticmethod
    def _table_to_event(row: EventTable) -> Event:
        return Event(
            id=row.id,
            name=row.name,
            type=EventType(row.type),
            location=row.location,
            date=_ensure_datetime(row.date),
            price=float(row.price),
            max_seats=int(row.max_seats),
            booked_seats=int(row.booked_seats),
        )

    @staticmethod
    def _table_to_purchase(row: PurchaseTable) -> PurchaseRecord:
        return PurchaseRecord(
            wallet_address=row.wallet_address,
            event_id=row.event_id,
            event_name=row.event_name,
            event_type=EventType(row.event_type),
            event_date=_ensure_datetime(row.event_date),
            event_location=row.event_location,
            status=PurchaseStatus(row.status),
            purchased_at=_ensure_datetime(row.purchased_at),
            checked_in_at=_optional_datetime(row.checked_in_at),
            nft_token_id=row.nft_token_id,
            nft_transaction_hash=row.nft_transaction_hash,
            nft_metadata_uri=row.nft_metadata_uri,
            nft_mint_success=bool(row.nft_mint_success),
            nft_block_number=row.nft_block_number,
            mint_error=row.mint_error,
        )


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")


def _optional_datetime(value: datetime | None) -> datetime | None:
    return None if value is None else _ensure_datetime(value)
