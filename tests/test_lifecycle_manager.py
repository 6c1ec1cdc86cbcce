from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from ticketing.chain.memory import InMemoryChainGateway
from ticketing.errors import (
    AlreadyCheckedInError,
    ChainRejectedError,
    ChainUnavailableError,
    DuplicatePurchaseError,
    EventNotFoundError,
    InvalidAddressError,
    PurchaseNotFoundError,
    ServiceUnavailableError,
    SoldOutError,
    TicketBurnedError,
    TicketNotFoundError,
    TicketRecordError,
    TicketValidationError,
)
from ticketing.tickets.models import Ticket
from ticketing.tickets.service import ChainOutcome, TicketLifecycleManager, parse_token_id
from ticketing.tickets.state import PurchaseStatus, TicketStatus
from tests.factories import OTHER_WALLET, WALLET, make_event, mint_payload

LOCAL_TOKEN = re.compile(r"^local_\d+_[0-9a-z]{9}$")


# Wallet purchases ---------------------------------------------------------------


@pytest.mark.asyncio
async def test_purchase_and_check_in_end_to_end(manager, store):
    result = await manager.purchase("1", WALLET)

    event = await store.get_event("1")
    assert event.booked_seats == 128
    assert result.event.booked_seats == 128
    assert result.mint_success is True
    assert result.token_id == "1"
    assert result.attendee.purchases["1"].status is PurchaseStatus.TO_BE_ATTENDED
    assert result.attendee.event_counts == {"tech": 1}

    checked_in = await manager.check_in(WALLET, "1")
    assert checked_in.status is PurchaseStatus.ATTENDED
    assert checked_in.metadata_updated is True

    with pytest.raises(AlreadyCheckedInError, match="This ticket has already been used."):
        await manager.check_in(WALLET, "1")
    record = await store.get_purchase(WALLET, "1")
    assert record.status is PurchaseStatus.ATTENDED
    assert record.checked_in_at == checked_in.checked_in_at


@pytest.mark.asyncio
async def test_purchase_consumes_exactly_one_seat(manager, store):
    before = (await store.get_event("2")).booked_seats

    await manager.purchase("2", WALLET)

    assert (await store.get_event("2")).booked_seats == before + 1


@pytest.mark.asyncio
async def test_purchase_rejects_missing_fields_before_side_effects(manager, store):
    with pytest.raises(TicketValidationError) as excinfo:
        await manager.purchase("1", "  ")

    assert excinfo.value.details["missing"] == ["userWalletAddress"]
    assert (await store.get_event("1")).booked_seats == 127


@pytest.mark.asyncio
async def test_purchase_rejects_malformed_wallet(manager, store, metrics):
    with pytest.raises(InvalidAddressError):
        await manager.purchase("1", "0x1234")

    assert (await store.get_event("1")).booked_seats == 127
    rejections = metrics.counter("ticket_purchase_rejections_total")
    assert rejections.value(labels={"reason": "invalid_address"}) == 1


@pytest.mark.asyncio
async def test_purchase_unknown_event(manager):
    with pytest.raises(EventNotFoundError):
        await manager.purchase("404", WALLET)


@pytest.mark.asyncio
async def test_purchase_sold_out_event(manager, store):
    await store.insert_event(make_event("full", max_seats=3, booked_seats=3))

    with pytest.raises(SoldOutError, match="All seats for this event have been booked."):
        await manager.purchase("full", WALLET)


@pytest.mark.asyncio
async def test_second_purchase_for_same_event_is_duplicate(manager, store):
    await manager.purchase("1", WALLET)

    with pytest.raises(DuplicatePurchaseError):
        await manager.purchase("1", WALLET.lower())
    assert (await store.get_event("1")).booked_seats == 128


@pytest.mark.asyncio
async def test_concurrent_purchases_for_last_seat(manager, store):
    await store.insert_event(make_event("last", max_seats=5, booked_seats=4))

    results = await asyncio.gather(
        manager.purchase("last", WALLET),
        manager.purchase("last", OTHER_WALLET),
        return_exceptions=True,
    )

    successes = [result for result in results if not isinstance(result, Exception)]
    failures = [result for result in results if isinstance(result, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], SoldOutError)
    assert (await store.get_event("last")).booked_seats == 5


@pytest.mark.asyncio
async def test_concurrent_duplicate_purchases(manager, store):
    results = await asyncio.gather(
        manager.purchase("3", WALLET),
        manager.purchase("3", WALLET),
        return_exceptions=True,
    )

    assert sum(isinstance(result, DuplicatePurchaseError) for result in results) == 1
    assert (await store.get_event("3")).booked_seats == 157


@pytest.mark.asyncio
async def test_purchase_falls_back_to_local_token_without_contract(store, metrics):
    manager = TicketLifecycleManager(store, InMemoryChainGateway(contract_ready=False), metrics=metrics)

    result = await manager.purchase("1", WALLET)

    assert result.mint_success is False
    assert LOCAL_TOKEN.match(result.token_id)
    assert result.transaction_hash.startswith("local_")
    assert result.mint_error == "Contract not deployed"
    assert (await store.get_event("1")).booked_seats == 128
    record = await store.get_purchase(WALLET, "1")
    assert record.nft_token_id == result.token_id
    assert record.nft_mint_success is False
    assert metrics.counter("ticket_purchases_total").value(labels={"mint": "local"}) == 1


@pytest.mark.asyncio
async def test_purchase_falls_back_when_mint_fails(manager, gateway, metrics, caplog):
    gateway.mint = AsyncMock(side_effect=ChainUnavailableError("node offline"))

    with caplog.at_level(logging.WARNING):
        result = await manager.purchase("1", WALLET)

    assert result.mint_success is False
    assert result.mint_error == "node offline"
    assert LOCAL_TOKEN.match(result.token_id)
    assert "node offline" in caplog.text
    assert metrics.counter("chain_call_failures_total").value(labels={"operation": "mint"}) == 1


@pytest.mark.asyncio
async def test_purchase_falls_back_when_mint_times_out(store, gateway, metrics):
    async def slow_mint(recipient, uri):
        await asyncio.sleep(5)

    gateway.mint = slow_mint
    manager = TicketLifecycleManager(store, gateway, chain_timeout=0.05, metrics=metrics)

    result = await manager.purchase("1", WALLET)

    assert result.mint_success is False
    assert "timed out" in result.mint_error
    assert (await store.get_event("1")).booked_seats == 128


# Wallet check-in ----------------------------------------------------------------


@pytest.mark.asyncio
async def test_check_in_unknown_wallet(manager):
    with pytest.raises(PurchaseNotFoundError, match="No ticket found for this wallet address."):
        await manager.check_in(WALLET, "1")


@pytest.mark.asyncio
async def test_check_in_unregistered_event(manager):
    await manager.purchase("1", WALLET)

    with pytest.raises(PurchaseNotFoundError, match="User has not registered for this event."):
        await manager.check_in(WALLET, "2")


@pytest.mark.asyncio
async def test_check_in_burned_purchase(manager, store):
    await manager.purchase("1", WALLET)
    record = await store.get_purchase(WALLET, "1")
    await store.update_purchase(replace(record, status=PurchaseStatus.BURNED))

    with pytest.raises(TicketBurnedError):
        await manager.check_in(WALLET, "1")


@pytest.mark.asyncio
async def test_check_in_swallows_metadata_update_failure(manager, gateway, store, caplog):
    await manager.purchase("1", WALLET)
    gateway.update_metadata = AsyncMock(side_effect=ChainRejectedError("reverted"))

    with caplog.at_level(logging.WARNING):
        result = await manager.check_in(WALLET, "1")

    assert result.status is PurchaseStatus.ATTENDED
    assert result.metadata_updated is False
    assert "reverted" in caplog.text
    assert (await store.get_purchase(WALLET, "1")).status is PurchaseStatus.ATTENDED


@pytest.mark.asyncio
async def test_check_in_writes_attended_metadata(manager, gateway):
    await manager.purchase("1", WALLET)

    await manager.check_in(WALLET, "1")

    info = await gateway.get_info(1)
    assert info.is_used is True
    assert '"Ticket Status", "value": "Attended"' in info.uri


@pytest.mark.asyncio
async def test_check_in_while_mint_is_pending_is_kept(manager, gateway, store):
    release = asyncio.Event()
    mint = gateway.mint

    async def gated_mint(recipient, uri):
        await release.wait()
        return await mint(recipient, uri)

    gateway.mint = gated_mint
    purchase = asyncio.create_task(manager.purchase("1", WALLET))
    while await store.get_purchase(WALLET, "1") is None:
        await asyncio.sleep(0)

    checked_in = await manager.check_in(WALLET, "1")
    release.set()
    result = await purchase

    assert result.mint_success is True
    record = await store.get_purchase(WALLET, "1")
    assert record.status is PurchaseStatus.ATTENDED
    assert record.checked_in_at == checked_in.checked_in_at
    assert record.nft_token_id == result.token_id
    assert record.nft_mint_success is True
    with pytest.raises(AlreadyCheckedInError):
        await manager.check_in(WALLET, "1")


@pytest.mark.asyncio
async def test_user_tickets(manager):
    await manager.purchase("1", WALLET)
    await manager.purchase("4", WALLET)

    records = await manager.user_tickets(WALLET.lower())

    assert [record.event_id for record in records] == ["1", "4"]
    with pytest.raises(TicketValidationError):
        await manager.user_tickets("")


# Organizer mint -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_mint_round_trip(manager):
    payload = mint_payload()

    minted = await manager.mint_ticket(**payload)
    details = await manager.get_ticket(minted.ticket.token_id)

    ticket = details.ticket
    assert ticket.status is TicketStatus.MINTED
    assert ticket.pre_metadata_uri == payload["pre_metadata_uri"]
    assert ticket.event_name == payload["event_name"]
    assert ticket.event_location == payload["event_location"]
    assert ticket.original_price == payload["original_price"]
    assert ticket.owner_address == WALLET.lower()
    assert details.chain_info is not None
    assert details.chain_info.uri == "ipfs://pre"
    assert minted.block_number is not None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"recipient_address": None},
        {"event_name": ""},
        {"event_date": None},
        {"event_location": "   "},
        {"pre_metadata_uri": None},
        {"original_price": None},
        {"recipient_address": "0xnothex"},
        {"recipient_address": "0x" + "1" * 39},
        {"event_date": "next friday"},
        {"original_price": 0},
        {"original_price": -5},
        {"original_price": "free"},
    ],
)
async def test_mint_validation_writes_nothing(manager, store, gateway, overrides):
    with pytest.raises(TicketValidationError):
        await manager.mint_ticket(**mint_payload(**overrides))

    counts = await store.count_tickets_by_status()
    assert sum(counts.values()) == 0
    assert await gateway.total_supply() == 0


@pytest.mark.asyncio
async def test_mint_reports_required_fields(manager):
    with pytest.raises(TicketValidationError) as excinfo:
        await manager.mint_ticket(**mint_payload(event_name=None, original_price=None))

    assert excinfo.value.details["missing"] == ["eventName", "originalPrice"]
    assert len(excinfo.value.details["required"]) == 6


@pytest.mark.asyncio
async def test_mint_requires_ready_gateway(store):
    not_ready = TicketLifecycleManager(store, InMemoryChainGateway(ready=False))
    no_contract = TicketLifecycleManager(store, InMemoryChainGateway(contract_ready=False))

    with pytest.raises(ServiceUnavailableError, match="Web3 service not ready"):
        await not_ready.mint_ticket(**mint_payload())
    with pytest.raises(ServiceUnavailableError, match="Smart contract not deployed"):
        await no_contract.mint_ticket(**mint_payload())


@pytest.mark.asyncio
async def test_mint_gateway_failure_is_fatal(manager, gateway, store):
    gateway.mint = AsyncMock(side_effect=ChainRejectedError("reverted"))

    with pytest.raises(ChainRejectedError):
        await manager.mint_ticket(**mint_payload())
    assert sum((await store.count_tickets_by_status()).values()) == 0


@pytest.mark.asyncio
async def test_mint_conflict_becomes_record_error(manager, store):
    existing = await manager.mint_ticket(**mint_payload())
    gateway_token = existing.ticket.token_id + 1
    await store.insert_ticket(replace(existing.ticket, token_id=gateway_token))

    with pytest.raises(TicketRecordError):
        await manager.mint_ticket(**mint_payload())


@pytest.mark.asyncio
async def test_mint_writes_audit_entry(manager):
    minted = await manager.mint_ticket(**mint_payload())

    log = await manager.audit_log(minted.ticket.token_id)

    assert [(entry.from_status, entry.to_status) for entry in log] == [(None, TicketStatus.MINTED)]
    assert log[0].metadata["transaction_hash"] == minted.transaction_hash


# Organizer check-in and burn ----------------------------------------------------


@pytest.mark.asyncio
async def test_check_in_by_token_is_idempotent_rejecting(manager, store):
    minted = await manager.mint_ticket(**mint_payload())
    token_id = minted.ticket.token_id

    checked_in = await manager.check_in_by_token(str(token_id), "ipfs://post")

    assert checked_in.ticket.status is TicketStatus.CHECKED_IN
    assert checked_in.ticket.post_metadata_uri == "ipfs://post"
    assert checked_in.ticket.checked_in_by == "organizer"
    with pytest.raises(AlreadyCheckedInError):
        await manager.check_in_by_token(token_id, "ipfs://other")
    stored = await store.find_ticket(token_id)
    assert stored.status is TicketStatus.CHECKED_IN
    assert stored.post_metadata_uri == "ipfs://post"


@pytest.mark.asyncio
async def test_check_in_by_token_failures(manager):
    with pytest.raises(TicketNotFoundError):
        await manager.check_in_by_token(42, "ipfs://post")
    with pytest.raises(TicketValidationError):
        await manager.check_in_by_token(None, "ipfs://post")


@pytest.mark.asyncio
async def test_check_in_by_token_gateway_failure_is_fatal(manager, gateway, store):
    minted = await manager.mint_ticket(**mint_payload())
    gateway.update_metadata = AsyncMock(side_effect=ChainUnavailableError("offline"))

    with pytest.raises(ChainUnavailableError):
        await manager.check_in_by_token(minted.ticket.token_id, "ipfs://post")
    assert (await store.find_ticket(minted.ticket.token_id)).status is TicketStatus.MINTED


@pytest.mark.asyncio
async def test_burned_ticket_never_checks_in(manager, store):
    minted = await manager.mint_ticket(**mint_payload())
    token_id = minted.ticket.token_id

    burned = await manager.burn_ticket(token_id)

    assert burned.ticket.status is TicketStatus.BURNED
    assert burned.ticket.burned_at is not None
    with pytest.raises(TicketBurnedError):
        await manager.check_in_by_token(token_id, "ipfs://post")
    with pytest.raises(TicketBurnedError):
        await manager.burn_ticket(token_id)
    assert (await store.find_ticket(token_id)).status is TicketStatus.BURNED
    log = await manager.audit_log(token_id)
    assert [entry.to_status for entry in log] == [TicketStatus.MINTED, TicketStatus.BURNED]


@pytest.mark.asyncio
async def test_burn_clears_check_in_fields(manager, store):
    minted = await manager.mint_ticket(**mint_payload())
    token_id = minted.ticket.token_id
    await manager.check_in_by_token(token_id, "ipfs://post")

    burned = await manager.burn_ticket(token_id)

    stored = await store.find_ticket(token_id)
    for ticket in (burned.ticket, stored):
        assert ticket.status is TicketStatus.BURNED
        assert ticket.checked_in_at is None
        assert ticket.post_metadata_uri is None
    log = await manager.audit_log(token_id)
    assert [entry.to_status for entry in log] == [
        TicketStatus.MINTED,
        TicketStatus.CHECKED_IN,
        TicketStatus.BURNED,
    ]


@pytest.mark.asyncio
async def test_lock_maps_do_not_retain_rejected_keys(manager):
    for n in range(100):
        with pytest.raises(EventNotFoundError):
            await manager.purchase(f"missing-{n}", WALLET)
        with pytest.raises(PurchaseNotFoundError):
            await manager.check_in(WALLET, f"missing-{n}")
        with pytest.raises(TicketNotFoundError):
            await manager.check_in_by_token(1000 + n, "ipfs://post")
        with pytest.raises(TicketNotFoundError):
            await manager.burn_ticket(1000 + n)
    await manager.purchase("1", WALLET)

    assert len(manager._event_locks) == 0
    assert len(manager._ticket_locks) == 0


@pytest.mark.asyncio
async def test_get_ticket_without_chain_info(manager, gateway):
    minted = await manager.mint_ticket(**mint_payload())
    gateway.get_info = AsyncMock(side_effect=ChainUnavailableError("offline"))

    details = await manager.get_ticket(minted.ticket.token_id)

    assert details.chain_info is None
    assert isinstance(details.ticket, Ticket)


@pytest.mark.asyncio
async def test_tickets_by_owner(manager):
    await manager.mint_ticket(**mint_payload())
    await manager.mint_ticket(**mint_payload(recipient_address=OTHER_WALLET))

    owned = await manager.tickets_by_owner(WALLET)

    assert [ticket.owner_address for ticket in owned] == [WALLET.lower()]
    with pytest.raises(InvalidAddressError):
        await manager.tickets_by_owner("not-an-address")


# Statistics ---------------------------------------------------------------------


@pytest.mark.asyncio
async def test_stats_counts_minted_and_checked_in(manager):
    minted = [await manager.mint_ticket(**mint_payload()) for _ in range(3)]
    await manager.check_in_by_token(minted[0].ticket.token_id, "ipfs://post")

    stats = await manager.stats()

    assert stats.total_tickets == 3
    assert stats.minted_tickets == 2
    assert stats.checked_in_tickets == 1
    assert stats.burned_tickets == 0
    assert stats.total_supply == 3


@pytest.mark.asyncio
async def test_stats_total_supply_is_best_effort(manager, gateway):
    gateway.total_supply = AsyncMock(side_effect=ChainUnavailableError("offline"))

    stats = await manager.stats()

    assert stats.total_supply is None
    assert stats.total_tickets == 0


# Helpers ------------------------------------------------------------------------


@pytest.mark.parametrize("value", ["abc", "0", 0, -3, True, "1.5", None])
def test_parse_token_id_rejects_invalid_values(value):
    with pytest.raises(TicketValidationError):
        parse_token_id(value)


def test_parse_token_id_accepts_digits():
    assert parse_token_id(" 12 ") == 12
    assert parse_token_id(7) == 7


def test_chain_outcome_logs_discarded_error(caplog):
    outcome: ChainOutcome[int] = ChainOutcome(error=ChainUnavailableError("gone"))

    with caplog.at_level(logging.WARNING):
        outcome.discard(logging.getLogger("test"), "total_supply")

    assert not outcome.ok
    assert "gone" in caplog.text
    with pytest.raises(ChainUnavailableError):
        outcome.unwrap()
    assert ChainOutcome(value=3).unwrap() == 3
