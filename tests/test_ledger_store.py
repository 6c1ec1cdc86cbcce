from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from ticketing.errors import DuplicatePurchaseError, LedgerConflictError, SeatsExhaustedError
from ticketing.tickets.models import PurchaseRecord, Ticket, TicketAuditEntry
from ticketing.tickets.repository import SqlLedgerStore
from ticketing.tickets.state import PurchaseStatus, TicketStatus
from ticketing.tickets.store import InMemoryLedgerStore

from tests.factories import OTHER_WALLET, WALLET, make_event


@pytest_asyncio.fixture(params=["memory", "sql"])
async def ledger(request):
    if request.param == "memory":
        yield InMemoryLedgerStore()
        return
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    store = SqlLedgerStore(async_sessionmaker(engine, expire_on_commit=False), engine=engine)
    await store.ensure_schema()
    try:
        yield store
    finally:
        await store.close()


def _ticket(token_id: int, owner: str = WALLET) -> Ticket:
    now = datetime.now(timezone.utc)
    return Ticket(
        token_id=token_id,
        contract_address=None,
        owner_address=owner,
        event_name="Launch Party",
        event_date=datetime(2025, 6, 1, tzinfo=timezone.utc),
        event_location="Berlin",
        pre_metadata_uri="ipfs://pre",
        original_price=25.0,
        status=TicketStatus.MINTED,
        minted_at=now,
        updated_at=now,
        transaction_hash="0xabc",
    )


def _purchase(event_id: str = "evt", wallet: str = WALLET) -> PurchaseRecord:
    event = make_event(event_id)
    return PurchaseRecord(
        wallet_address=wallet,
        event_id=event_id,
        event_name=event.name,
        event_type=event.type,
        event_date=event.date,
        event_location=event.location,
        status=PurchaseStatus.TO_BE_ATTENDED,
        purchased_at=datetime.now(timezone.utc),
    )


@pytest.mark.asyncio
async def test_insert_and_find_ticket(ledger):
    await ledger.insert_ticket(_ticket(1))

    found = await ledger.find_ticket(1)

    assert found is not None
    assert found.owner_address == WALLET.lower()
    assert found.status is TicketStatus.MINTED
    assert await ledger.find_ticket(99) is None


@pytest.mark.asyncio
async def test_duplicate_token_id_is_a_conflict(ledger):
    await ledger.insert_ticket(_ticket(1))

    with pytest.raises(LedgerConflictError):
        await ledger.insert_ticket(_ticket(1))


@pytest.mark.asyncio
async def test_update_ticket_status_sets_fields(ledger):
    await ledger.insert_ticket(_ticket(1))
    checked_in_at = datetime(2025, 6, 1, 19, tzinfo=timezone.utc)

    updated = await ledger.update_ticket_status(
        1,
        TicketStatus.CHECKED_IN,
        post_metadata_uri="ipfs://post",
        checked_in_at=checked_in_at,
        checked_in_by="organizer",
    )

    assert updated is not None
    assert updated.status is TicketStatus.CHECKED_IN
    assert updated.post_metadata_uri == "ipfs://post"
    assert updated.checked_in_at == checked_in_at
    assert await ledger.update_ticket_status(2, TicketStatus.BURNED) is None


@pytest.mark.asyncio
async def test_update_ticket_status_rejects_unknown_fields(ledger):
    await ledger.insert_ticket(_ticket(1))

    with pytest.raises(ValueError):
        await ledger.update_ticket_status(1, TicketStatus.BURNED, owner_address=OTHER_WALLET)


@pytest.mark.asyncio
async def test_find_by_owner_and_counts(ledger):
    await ledger.insert_ticket(_ticket(1))
    await ledger.insert_ticket(_ticket(2, owner=OTHER_WALLET))
    await ledger.insert_ticket(_ticket(3))
    await ledger.update_ticket_status(3, TicketStatus.BURNED, burned_at=datetime.now(timezone.utc))

    owned = await ledger.find_tickets_by_owner(WALLET.upper().replace("0X", "0x"))
    counts = await ledger.count_tickets_by_status()

    assert [ticket.token_id for ticket in owned] == [1, 3]
    assert counts == {TicketStatus.MINTED: 2, TicketStatus.CHECKED_IN: 0, TicketStatus.BURNED: 1}


@pytest.mark.asyncio
async def test_audit_log_round_trip(ledger):
    entry = TicketAuditEntry(
        id="a1",
        token_id=1,
        from_status=None,
        to_status=TicketStatus.MINTED,
        actor="organizer",
        note="minted",
        created_at=datetime.now(timezone.utc),
        metadata={"transaction_hash": "0xabc"},
    )
    await ledger.add_audit_entry(entry)

    log = await ledger.get_audit_log(1)

    assert len(log) == 1
    assert log[0].metadata == {"transaction_hash": "0xabc"}
    assert log[0].from_status is None
    assert await ledger.get_audit_log(2) == []


@pytest.mark.asyncio
async def test_increment_booked_seats_until_full(ledger):
    await ledger.insert_event(make_event("evt", max_seats=2, booked_seats=1))

    event = await ledger.increment_booked_seats("evt")

    assert event is not None
    assert event.booked_seats == 2
    assert event.is_sold_out
    with pytest.raises(SeatsExhaustedError):
        await ledger.increment_booked_seats("evt")
    assert (await ledger.get_event("evt")).booked_seats == 2
    assert await ledger.increment_booked_seats("missing") is None


@pytest.mark.asyncio
async def test_purchases_create_attendee_and_count_types(ledger):
    attendee = await ledger.add_purchase(_purchase("evt"))
    attendee = await ledger.add_purchase(_purchase("evt-2"))

    assert attendee.wallet_address == WALLET.lower()
    assert list(attendee.purchases) == ["evt", "evt-2"]
    assert attendee.event_counts == {"tech": 2}
    assert await ledger.get_attendee(OTHER_WALLET) is None


@pytest.mark.asyncio
async def test_duplicate_purchase_is_rejected(ledger):
    await ledger.add_purchase(_purchase("evt"))

    with pytest.raises(DuplicatePurchaseError):
        await ledger.add_purchase(_purchase("evt", wallet=WALLET.lower()))


@pytest.mark.asyncio
async def test_update_purchase_persists_nft_linkage(ledger):
    await ledger.add_purchase(_purchase("evt"))
    record = await ledger.get_purchase(WALLET, "evt")

    updated = await ledger.update_purchase(
        replace(record, nft_token_id="7", nft_mint_success=True, status=PurchaseStatus.ATTENDED)
    )

    assert updated is not None
    assert updated.nft_token_id == "7"
    assert updated.nft_mint_success is True
    assert (await ledger.list_purchases(WALLET))[0].status is PurchaseStatus.ATTENDED
    assert await ledger.update_purchase(_purchase("other")) is None
