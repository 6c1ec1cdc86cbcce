from __future__ import annotations

import logging
from datetime import datetime, timezone

from .models import Event, EventType
from .store import LedgerStore

logger = logging.getLogger(__name__)


def sample_events() -> list[Event]:
    """Catalogue served in demo deployments."""

    def _date(year: int, month: int, day: int) -> datetime:
        return datetime(year, month, day, tzinfo=timezone.utc)

    return [
        Event("1", "MAD(wo)MEN Launch Party", EventType.TECH, "New York City, NY", _date(2025, 1, 15), 99.99, 500, 127),
        Event("2", "Blockchain & Web3 Summit", EventType.TECH, "San Francisco, CA", _date(2025, 2, 20), 149.99, 300, 89),
        Event("3", "Tech Innovation Conference", EventType.TECH, "Austin, TX", _date(2025, 3, 10), 79.99, 400, 156),
        Event("4", "Digital Art Exhibition", EventType.ART, "Los Angeles, CA", _date(2025, 4, 5), 45.00, 200, 78),
        Event("5", "Music Festival 2025", EventType.MUSIC, "Miami, FL", _date(2025, 5, 15), 199.99, 1000, 234),
    ]


async def seed_sample_events(store: LedgerStore) -> int:
    """Insert the sample catalogue when the store holds no events yet."""

    if await store.list_events():
        return 0
    events = sample_events()
    for event in events:
        await store.insert_event(event)
    logger.info("Seeded %d sample events", len(events))
    return len(events)
