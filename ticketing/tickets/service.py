"""Ticket lifecycle orchestration across the ledger store and the chain gateway."""

from __future__ import annotations

import asyncio
import logging
import secrets
import string
import time
import uuid
import weakref
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from time import perf_counter
from typing import Any, Awaitable, Callable, Generic, TypeVar

from opentelemetry import trace

from ticketing.chain.gateway import ChainGateway, ChainTokenInfo, MintReceipt, normalize_address
from ticketing.errors import (
    AlreadyCheckedInError,
    ChainUnavailableError,
    DuplicatePurchaseError,
    EventNotFoundError,
    InvalidAddressError,
    LedgerConflictError,
    PurchaseNotFoundError,
    ServiceUnavailableError,
    SoldOutError,
    TicketBurnedError,
    TicketingError,
    TicketNotFoundError,
    TicketRecordError,
    TicketValidationError,
)
from ticketing.metrics import MetricsRegistry, metrics_registry, register_default_metrics

from .metadata import build_attended_metadata, build_ticket_metadata
from .models import (
    BurnedTicket,
    CheckedInTicket,
    CheckInResult,
    Event,
    MintedTicket,
    PurchaseRecord,
    PurchaseResult,
    Ticket,
    TicketAuditEntry,
    TicketDetails,
    TicketStats,
)
from .state import PurchaseStatus, TicketStateMachine, TicketStatus
from .store import LedgerStore

T = TypeVar("T")

DEFAULT_CHAIN_TIMEOUT = 30.0

_BASE36 = string.digits + string.ascii_lowercase

tracer = trace.get_tracer(__name__)


@dataclass
class ChainOutcome(Generic[T]):
    """Result of a best-effort gateway call: either a value or the error it raised.

    Callers that do not need the value may discard the outcome; `discard` logs the
    error so it is never lost silently.
    """

    value: T | None = None
    error: TicketingError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def discard(self, logger: logging.Logger, operation: str) -> None:
        if self.error is not None:
            logger.warning("Best-effort chain %s failed: %s", operation, self.error.message)


def local_token_id() -> str:
    """Identifier recorded for a purchase whose NFT could not be minted."""

    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"local_{int(time.time() * 1000)}_{suffix}"


def parse_token_id(value: Any) -> int:
    """Accept a positive integer or its decimal string form."""

    if isinstance(value, bool):
        raise TicketValidationError("Invalid token ID")
    if isinstance(value, int):
        token_id = value
    elif isinstance(value, str) and value.strip().isdigit():
        token_id = int(value.strip())
    else:
        raise TicketValidationError("Invalid token ID")
    if token_id <= 0:
        raise TicketValidationError("Invalid token ID")
    return token_id


def parse_event_date(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            raise TicketValidationError("Invalid event date format") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_price(value: Any) -> float:
    if isinstance(value, bool):
        raise TicketValidationError("Original price must be a positive number")
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise TicketValidationError("Original price must be a positive number") from None
    if not price > 0:
        raise TicketValidationError("Original price must be a positive number")
    return price


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _require(fields: dict[str, Any]) -> None:
    missing = [name for name, value in fields.items() if _is_blank(value)]
    if missing:
        raise TicketValidationError(
            "Missing required fields",
            details={"required": list(fields), "missing": missing},
        )


def _lock_for(locks: weakref.WeakValueDictionary[Any, asyncio.Lock], key: Any) -> asyncio.Lock:
    lock = locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        locks[key] = lock
    return lock


class TicketLifecycleManager:
    """Coordinate purchases, mints, check-ins and burns.

    The ledger store is the record of truth for seats and purchases; the chain
    gateway is consulted for mints and metadata updates. Organizer operations fail
    when the gateway fails, while the wallet flow degrades to local records.
    """

    def __init__(
        self,
        store: LedgerStore,
        gateway: ChainGateway,
        *,
        chain_timeout: float = DEFAULT_CHAIN_TIMEOUT,
        contract_address: str | None = None,
        logger: logging.Logger | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._chain_timeout = chain_timeout
        self._contract_address = contract_address.lower() if contract_address else None
        self._logger = logger or logging.getLogger(__name__)
        self._metrics = register_default_metrics(metrics) if metrics is not None else metrics_registry
        # entries vanish once no coroutine holds or awaits the lock
        self._event_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._ticket_locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()

    @property
    def store(self) -> LedgerStore:
        return self._store

    @property
    def gateway(self) -> ChainGateway:
        return self._gateway

    # Wallet flow -----------------------------------------------------------------

    async def purchase(self, event_id: str | None, wallet_address: str | None) -> PurchaseResult:
        _require({"eventId": event_id, "userWalletAddress": wallet_address})
        try:
            wallet = normalize_address(wallet_address or "")
        except InvalidAddressError:
            self._count_rejection("invalid_address")
            raise
        event_id = str(event_id).strip()

        async with _lock_for(self._event_locks, event_id):
            event = await self._store.get_event(event_id)
            if event is None:
                self._count_rejection("event_not_found")
                raise EventNotFoundError("Event not found.")
            if event.is_sold_out:
                self._count_rejection("sold_out")
                raise SoldOutError("All seats for this event have been booked.")
            if await self._store.get_purchase(wallet, event_id) is not None:
                self._count_rejection("duplicate")
                raise DuplicatePurchaseError("You have already purchased a ticket for this event.")

            booked = await self._store.increment_booked_seats(event_id)
            if booked is None:
                raise EventNotFoundError("Event not found.")
            metadata_uri = build_ticket_metadata(booked)
            pending = PurchaseRecord(
                wallet_address=wallet,
                event_id=event_id,
                event_name=booked.name,
                event_type=booked.type,
                event_date=booked.date,
                event_location=booked.location,
                status=PurchaseStatus.TO_BE_ATTENDED,
                purchased_at=datetime.now(timezone.utc),
                nft_metadata_uri=metadata_uri,
            )
            await self._store.add_purchase(pending)

        outcome = await self._mint_for_purchase(wallet, metadata_uri)
        if outcome.ok:
            receipt = outcome.unwrap()
            linkage: dict[str, Any] = {
                "nft_token_id": str(receipt.token_id),
                "nft_transaction_hash": receipt.transaction_hash,
                "nft_block_number": receipt.block_number,
                "nft_mint_success": True,
            }
            self._logger.info("Minted NFT %s for %s (event %s)", receipt.token_id, wallet, event_id)
        else:
            outcome.discard(self._logger, "mint")
            linkage = {
                "nft_token_id": local_token_id(),
                "nft_transaction_hash": f"local_{int(time.time() * 1000)}",
                "nft_mint_success": False,
                "mint_error": outcome.error.message if outcome.error else None,
            }

        # a check-in may have landed while the mint was in flight; only the NFT fields change here
        async with _lock_for(self._event_locks, event_id):
            current = await self._store.get_purchase(wallet, event_id) or pending
            record = replace(current, **linkage)
            await self._store.update_purchase(record)
        attendee = await self._store.get_attendee(wallet)

        self._metrics.counter("ticket_purchases_total").inc(
            labels={"mint": "chain" if record.nft_mint_success else "local"}
        )
        self._logger.info("Ticket purchased for event %s by %s", booked.name, wallet)
        return PurchaseResult(
            transaction_hash=record.nft_transaction_hash or "",
            token_id=record.nft_token_id or "",
            event=booked,
            attendee=attendee,
            purchase=record,
            mint_success=record.nft_mint_success,
            mint_error=record.mint_error,
        )

    async def check_in(self, wallet_address: str | None, event_id: str | None) -> CheckInResult:
        _require({"userWalletAddress": wallet_address, "eventId": event_id})
        wallet = normalize_address(wallet_address or "")
        event_id = str(event_id).strip()

        async with _lock_for(self._event_locks, event_id):
            attendee = await self._store.get_attendee(wallet)
            if attendee is None:
                raise PurchaseNotFoundError("No ticket found for this wallet address.")
            record = attendee.purchases.get(event_id)
            if record is None:
                raise PurchaseNotFoundError("User has not registered for this event.")
            try:
                TicketStateMachine.assert_transition(record.status.lifecycle, TicketStatus.CHECKED_IN)
            except AlreadyCheckedInError:
                raise AlreadyCheckedInError("This ticket has already been used.") from None
            except TicketBurnedError:
                raise TicketBurnedError("This ticket has been burned and can no longer be used.") from None

            checked_in_at = datetime.now(timezone.utc)
            record = replace(record, status=PurchaseStatus.ATTENDED, checked_in_at=checked_in_at)
            await self._store.update_purchase(record)

        metadata_updated = False
        if record.nft_mint_success and record.nft_token_id and self._gateway.is_contract_ready():
            token_id = int(record.nft_token_id)
            uri = build_attended_metadata(record, checked_in_at)
            outcome = await self._attempt("update_metadata", lambda: self._gateway.update_metadata(token_id, uri))
            outcome.discard(self._logger, "update_metadata")
            metadata_updated = outcome.ok

        self._metrics.counter("tickets_checked_in_total").inc(labels={"flow": "wallet"})
        self._logger.info("Checked in %s for event %s", wallet, event_id)
        return CheckInResult(
            wallet_address=wallet,
            event_id=event_id,
            token_id=record.nft_token_id or event_id,
            status=PurchaseStatus.ATTENDED,
            checked_in_at=checked_in_at,
            metadata_updated=metadata_updated,
        )

    async def user_tickets(self, wallet_address: str | None) -> list[PurchaseRecord]:
        if _is_blank(wallet_address):
            raise TicketValidationError("Wallet address is required")
        return await self._store.list_purchases(str(wallet_address).strip().lower())

    # Organizer flow --------------------------------------------------------------

    async def mint_ticket(
        self,
        *,
        recipient_address: Any,
        event_name: Any,
        event_date: Any,
        event_location: Any,
        pre_metadata_uri: Any,
        original_price: Any,
        actor: str = "organizer",
    ) -> MintedTicket:
        _require(
            {
                "recipientAddress": recipient_address,
                "eventName": event_name,
                "eventDate": event_date,
                "eventLocation": event_location,
                "preEventMetadataURI": pre_metadata_uri,
                "originalPrice": original_price,
            }
        )
        recipient = normalize_address(str(recipient_address))
        parsed_date = parse_event_date(event_date)
        price = parse_price(original_price)
        self._require_gateway()

        receipt = await self._call_chain(
            "mint", lambda: self._gateway.mint(recipient, str(pre_metadata_uri))
        )
        now = datetime.now(timezone.utc)
        ticket = Ticket(
            token_id=receipt.token_id,
            contract_address=self._contract_address,
            owner_address=recipient,
            event_name=str(event_name).strip(),
            event_date=parsed_date,
            event_location=str(event_location).strip(),
            pre_metadata_uri=str(pre_metadata_uri),
            original_price=price,
            status=TicketStateMachine.initial_state(),
            minted_at=now,
            updated_at=now,
            transaction_hash=receipt.transaction_hash,
        )
        try:
            ticket = await self._store.insert_ticket(ticket)
        except LedgerConflictError as exc:
            self._logger.error("Minted token %s could not be recorded: %s", receipt.token_id, exc.message)
            raise TicketRecordError(
                f"Ticket {receipt.token_id} was minted on-chain but could not be recorded"
            ) from exc

        await self._audit(ticket.token_id, None, TicketStatus.MINTED, actor, "minted", receipt.transaction_hash)
        self._metrics.counter("tickets_minted_total").inc()
        self._logger.info("Minted ticket %s for %s", ticket.token_id, recipient)
        return MintedTicket(
            ticket=ticket,
            transaction_hash=receipt.transaction_hash,
            block_number=receipt.block_number,
            gas_used=receipt.gas_used,
        )

    async def check_in_by_token(
        self, token_id: Any, post_metadata_uri: Any, *, actor: str = "organizer"
    ) -> CheckedInTicket:
        _require({"tokenId": token_id, "postEventMetadataURI": post_metadata_uri})
        token = parse_token_id(token_id)

        async with _lock_for(self._ticket_locks, token):
            ticket = await self._get_ticket(token)
            TicketStateMachine.assert_transition(ticket.status, TicketStatus.CHECKED_IN)
            self._require_gateway()
            receipt = await self._call_chain(
                "update_metadata", lambda: self._gateway.update_metadata(token, str(post_metadata_uri))
            )
            updated = await self._store.update_ticket_status(
                token,
                TicketStatus.CHECKED_IN,
                post_metadata_uri=str(post_metadata_uri),
                checked_in_at=datetime.now(timezone.utc),
                checked_in_by=actor,
            )
            if updated is None:
                raise TicketNotFoundError(f"Ticket {token} not found")

        await self._audit(token, ticket.status, TicketStatus.CHECKED_IN, actor, "checked in", receipt.transaction_hash)
        self._metrics.counter("tickets_checked_in_total").inc(labels={"flow": "token"})
        self._logger.info("Checked in ticket %s", token)
        return CheckedInTicket(
            ticket=updated,
            transaction_hash=receipt.transaction_hash,
            block_number=receipt.block_number,
            gas_used=receipt.gas_used,
        )

    async def burn_ticket(self, token_id: Any, *, actor: str = "admin") -> BurnedTicket:
        _require({"tokenId": token_id})
        token = parse_token_id(token_id)

        async with _lock_for(self._ticket_locks, token):
            ticket = await self._get_ticket(token)
            TicketStateMachine.assert_transition(ticket.status, TicketStatus.BURNED)
            self._require_gateway()
            receipt = await self._call_chain("burn", lambda: self._gateway.burn(token))
            # check-in details survive in the audit log only
            updated = await self._store.update_ticket_status(
                token,
                TicketStatus.BURNED,
                burned_at=datetime.now(timezone.utc),
                checked_in_at=None,
                post_metadata_uri=None,
            )
            if updated is None:
                raise TicketNotFoundError(f"Ticket {token} not found")

        await self._audit(token, ticket.status, TicketStatus.BURNED, actor, "burned", receipt.transaction_hash)
        self._metrics.counter("tickets_burned_total").inc()
        self._logger.info("Burned ticket %s", token)
        return BurnedTicket(
            ticket=updated,
            transaction_hash=receipt.transaction_hash,
            block_number=receipt.block_number,
            gas_used=receipt.gas_used,
        )

    # Queries ---------------------------------------------------------------------

    async def get_ticket(self, token_id: Any) -> TicketDetails:
        token = parse_token_id(token_id)
        ticket = await self._get_ticket(token)
        chain_info: ChainTokenInfo | None = None
        if self._gateway.is_contract_ready():
            outcome = await self._attempt("get_info", lambda: self._gateway.get_info(token))
            outcome.discard(self._logger, "get_info")
            chain_info = outcome.value
        return TicketDetails(ticket=ticket, chain_info=chain_info)

    async def tickets_by_owner(self, address: str | None) -> list[Ticket]:
        owner = normalize_address(address or "")
        return await self._store.find_tickets_by_owner(owner)

    async def audit_log(self, token_id: Any) -> list[TicketAuditEntry]:
        token = parse_token_id(token_id)
        await self._get_ticket(token)
        return await self._store.get_audit_log(token)

    async def stats(self) -> TicketStats:
        counts = await self._store.count_tickets_by_status()
        total_supply: int | None = None
        if self._gateway.is_contract_ready():
            outcome = await self._attempt("total_supply", self._gateway.total_supply)
            outcome.discard(self._logger, "total_supply")
            total_supply = outcome.value
        return TicketStats(
            total_tickets=sum(counts.values()),
            minted_tickets=counts.get(TicketStatus.MINTED, 0),
            checked_in_tickets=counts.get(TicketStatus.CHECKED_IN, 0),
            burned_tickets=counts.get(TicketStatus.BURNED, 0),
            total_supply=total_supply,
        )

    async def list_events(self) -> list[Event]:
        return await self._store.list_events()

    async def get_event(self, event_id: str) -> Event:
        event = await self._store.get_event(event_id)
        if event is None:
            raise EventNotFoundError("Event not found")
        return event

    # Internals -------------------------------------------------------------------

    def _require_gateway(self) -> None:
        if not self._gateway.is_ready():
            raise ServiceUnavailableError("Web3 service not ready")
        if not self._gateway.is_contract_ready():
            raise ServiceUnavailableError("Smart contract not deployed")

    async def _get_ticket(self, token_id: int) -> Ticket:
        ticket = await self._store.find_ticket(token_id)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket {token_id} not found")
        return ticket

    async def _mint_for_purchase(self, wallet: str, metadata_uri: str) -> ChainOutcome[MintReceipt]:
        if not self._gateway.is_contract_ready():
            return ChainOutcome(error=ServiceUnavailableError("Contract not deployed"))
        return await self._attempt("mint", lambda: self._gateway.mint(wallet, metadata_uri))

    async def _call_chain(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        labels = {"operation": operation}
        start = perf_counter()
        try:
            with tracer.start_as_current_span(f"chain.{operation}"):
                return await asyncio.wait_for(call(), timeout=self._chain_timeout)
        except asyncio.TimeoutError as exc:
            self._metrics.counter("chain_call_failures_total").inc(labels=labels)
            raise ChainUnavailableError(
                f"Chain {operation} timed out after {self._chain_timeout:g}s"
            ) from exc
        except TicketingError:
            self._metrics.counter("chain_call_failures_total").inc(labels=labels)
            raise
        finally:
            self._metrics.distribution("chain_call_duration_seconds").observe(
                perf_counter() - start, labels=labels
            )

    async def _attempt(self, operation: str, call: Callable[[], Awaitable[T]]) -> ChainOutcome[T]:
        try:
            return ChainOutcome(value=await self._call_chain(operation, call))
        except TicketingError as exc:
            return ChainOutcome(error=exc)

    async def _audit(
        self,
        token_id: int,
        from_status: TicketStatus | None,
        to_status: TicketStatus,
        actor: str,
        note: str,
        transaction_hash: str,
    ) -> None:
        await self._store.add_audit_entry(
            TicketAuditEntry(
                id=str(uuid.uuid4()),
                token_id=token_id,
                from_status=from_status,
                to_status=to_status,
                actor=actor,
                note=note,
                created_at=datetime.now(timezone.utc),
                metadata={"transaction_hash": transaction_hash},
            )
        )

    def _count_rejection(self, reason: str) -> None:
        self._metrics.counter("ticket_purchase_rejections_total").inc(labels={"reason": reason})
