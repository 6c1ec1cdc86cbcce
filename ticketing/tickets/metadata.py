"""NFT metadata payloads attached to wallet-flow tickets."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from .models import Event, PurchaseRecord

ACTIVE_TICKET_IMAGE = "https://via.placeholder.com/400x400/6366f1/ffffff?text=Event+Ticket"
ATTENDED_TICKET_IMAGE = "https://via.placeholder.com/400x400/10b981/ffffff?text=Event+Attended"


def _attribute(trait: str, value: Any) -> dict[str, Any]:
    return {"trait_type": trait, "value": value}


def build_ticket_metadata(event: Event) -> str:
    """Serialise the pre-event metadata minted with a purchased ticket."""

    payload = {
        "name": f"{event.name} - Ticket",
        "description": f"NFT Ticket for {event.name}",
        "image": ACTIVE_TICKET_IMAGE,
        "attributes": [
            _attribute("Event Name", event.name),
            _attribute("Event Type", event.type.value),
            _attribute("Event Date", event.date.isoformat()),
            _attribute("Event Location", event.location),
            _attribute("Ticket Status", "Active"),
        ],
    }
    return json.dumps(payload)


def build_attended_metadata(purchase: PurchaseRecord, checked_in_at: datetime) -> str:
    """Serialise the post-event metadata written when the holder checks in."""

    payload = {
        "name": f"{purchase.event_name} - Attended",
        "description": f"NFT Ticket for {purchase.event_name} - Event Attended",
        "image": ATTENDED_TICKET_IMAGE,
        "attributes": [
            _attribute("Event Name", purchase.event_name),
            _attribute("Event Type", purchase.event_type.value),
            _attribute("Event Date", purchase.event_date.isoformat()),
            _attribute("Event Location", purchase.event_location or "Unknown"),
            _attribute("Ticket Status", "Attended"),
            _attribute("Check-in Date", checked_in_at.isoformat()),
        ],
    }
    return json.dumps(payload)
