from . import events, health, tickets, wallet

__all__ = ["events", "health", "tickets", "wallet"]
