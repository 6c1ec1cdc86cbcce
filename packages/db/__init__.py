"""Database models and utilities."""

from .models import EventTable, PurchaseTable, TicketAuditLogTable, TicketTable

__all__ = [
    "EventTable",
    "PurchaseTable",
    "TicketAuditLogTable",
    "TicketTable",
]
