from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from addressdesk.api.routes import ping, signatures, staff, tickets
from addressdesk.core.config import Settings, get_settings
from addressdesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from addressdesk.tickets.memory import InMemoryStaffDirectory, InMemoryTicketRepository
from addressdesk.tickets.repository import SQLStaffDirectory, SQLTicketRepository
from addressdesk.tickets.service import TicketService


def _to_asyncpg_dsn(dsn: str) -> str:
    """Ensure the SQLAlchemy DSN uses the asyncpg driver."""

    if dsn.startswith("postgresql+asyncpg://"):
        return dsn
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    return dsn


def build_memory_service(settings: Settings) -> TicketService:
    return TicketService(InMemoryTicketRepository(), InMemoryStaffDirectory(), settings=settings)


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    db_engine = None
    app.state.db_engine = None
    app.state.db_session_factory = None
    try:
        if settings.storage_backend == "memory":
            app.state.ticket_service = build_memory_service(settings)
        else:
            db_engine = create_async_engine(_to_asyncpg_dsn(settings.postgres_dsn), future=True)
            session_factory = async_sessionmaker(db_engine, expire_on_commit=False)
            ticket_repository = SQLTicketRepository(session_factory, engine=db_engine)
            await ticket_repository.ensure_schema()
            app.state.ticket_service = TicketService(
                ticket_repository,
                SQLStaffDirectory(session_factory),
                settings=settings,
            )
            app.state.db_engine = db_engine
            app.state.db_session_factory = session_factory
        logger.info("Ticket service ready (storage backend: %s)", settings.storage_backend)
    except Exception:
        logger.exception("Ticket service initialisation failed; ticket routes will return 503")
        app.state.ticket_service = None
        if db_engine is not None:
            await db_engine.dispose()
            db_engine = None
    try:
        yield
    finally:
        if db_engine is not None:
            await db_engine.dispose()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(ping.router)
    app.include_router(tickets.router)
    app.include_router(signatures.router)
    app.include_router(staff.router)
    return app


app = create_app()
