from __future__ import annotations

import pytest
import pytest_asyncio

from ticketing.chain.memory import InMemoryChainGateway
from ticketing.metrics import MetricsRegistry
from ticketing.tickets.seed import seed_sample_events
from ticketing.tickets.service import TicketLifecycleManager
from ticketing.tickets.store import InMemoryLedgerStore


@pytest.fixture
def metrics() -> MetricsRegistry:
    return MetricsRegistry()


@pytest.fixture
def gateway() -> InMemoryChainGateway:
    return InMemoryChainGateway()


@pytest_asyncio.fixture
async def store() -> InMemoryLedgerStore:
    store = InMemoryLedgerStore()
    await seed_sample_events(store)
    return store


@pytest.fixture
def manager(store, gateway, metrics) -> TicketLifecycleManager:
    return TicketLifecycleManager(store, gateway, chain_timeout=1.0, metrics=metrics)
