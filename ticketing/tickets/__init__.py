"""Ticket domain: lifecycle states, ledger stores and the lifecycle manager."""
from .models import Event, EventType, PurchaseRecord, Ticket, TicketAuditEntry
from .repository import SqlLedgerStore
from .service import ChainOutcome, TicketLifecycleManager
from .state import PurchaseStatus, TicketStateMachine, TicketStatus
from .store import InMemoryLedgerStore, LedgerStore

__all__ = [
    "ChainOutcome",
    "Event",
    "EventType",
    "InMemoryLedgerStore",
    "LedgerStore",
    "PurchaseRecord",
    "PurchaseStatus",
    "SqlLedgerStore",
    "Ticket",
    "TicketAuditEntry",
    "TicketLifecycleManager",
    "TicketStateMachine",
    "TicketStatus",
]
