from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from ticketing.api.errors import register_exception_handlers
from ticketing.api.routes import events, health, tickets, wallet
from ticketing.chain import ChainGateway, InMemoryChainGateway, Web3ChainGateway
from ticketing.core.config import Settings, get_settings
from ticketing.core.logging import configure_logging, init_tracer, shutdown_tracer
from ticketing.metrics import PrometheusExporter, metrics_registry
from ticketing.middleware import RateLimitMiddleware
from ticketing.services.wallet import WalletService
from ticketing.tickets.repository import SqlLedgerStore
from ticketing.tickets.seed import seed_sample_events
from ticketing.tickets.service import TicketLifecycleManager
from ticketing.tickets.store import InMemoryLedgerStore, LedgerStore


def _to_asyncpg_dsn(dsn: str) -> str:
    """Ensure PostgreSQL DSNs use the asyncpg driver."""

    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    if dsn.startswith("postgres://"):
        return "postgresql+asyncpg://" + dsn[len("postgres://") :]
    return dsn


def build_store(settings: Settings) -> tuple[LedgerStore, str]:
    if not settings.database_url:
        return InMemoryLedgerStore(), "memory"
    engine = create_async_engine(_to_asyncpg_dsn(settings.database_url), future=True)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    return SqlLedgerStore(session_factory, engine=engine), "sql"


def build_gateway(settings: Settings) -> ChainGateway:
    mode = settings.chain_mode.lower()
    if mode == "memory":
        return InMemoryChainGateway()
    if mode == "web3":
        return Web3ChainGateway(
            rpc_url=settings.resolved_rpc_url,
            contract_address=settings.contract_address,
            private_key=settings.organizer_private_key,
            chain_id=settings.chain_id,
            receipt_timeout=settings.receipt_timeout_seconds,
        )
    raise ValueError(f"Unsupported chain mode: {settings.chain_mode}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    app.state.chain_mode = settings.chain_mode
    app.state.metrics_exporter = PrometheusExporter(metrics_registry)
    app.state.lifecycle_manager = None

    store, backend = build_store(settings)
    gateway = build_gateway(settings)
    wallet_service = WalletService(
        rpc_url=settings.resolved_rpc_url,
        chain_id=settings.chain_id,
        private_key=settings.organizer_private_key,
        timeout=settings.chain_timeout_seconds,
    )
    app.state.storage_backend = backend
    app.state.wallet_service = wallet_service
    try:
        await store.ensure_schema()
        if settings.seed_sample_events:
            await seed_sample_events(store)
        app.state.lifecycle_manager = TicketLifecycleManager(
            store,
            gateway,
            chain_timeout=settings.chain_timeout_seconds,
            contract_address=settings.contract_address,
            logger=logger,
            metrics=metrics_registry,
        )
        logger.info("Ticketing service ready (storage=%s, chain=%s)", backend, settings.chain_mode)
    except Exception:  # pragma: no cover - storage initialisation best effort
        logger.exception("Failed to initialise the ledger store; ticket routes are disabled")
    try:
        yield
    finally:
        await wallet_service.close()
        await gateway.close()
        await store.close()
        shutdown_tracer(tracer_provider)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.add_middleware(
        RateLimitMiddleware,
        limit=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    app.include_router(health.router)
    app.include_router(tickets.router)
    app.include_router(events.router)
    app.include_router(wallet.router)
    return app


app = create_app()
