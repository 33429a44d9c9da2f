# app/database.py
import logging
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

# SQLAlchemy Base
Base = declarative_base()


def create_engine_for_url(url: str, **kwargs) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    SQLite connections start every transaction with BEGIN IMMEDIATE so
    concurrent writers queue on the database lock instead of racing.
    """
    engine = create_async_engine(url, echo=settings.DB_ECHO, **kwargs)

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine.sync_engine, "connect")
        def _disable_implicit_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


# Create engine and session factory
engine = create_engine_for_url(settings.DATABASE_URL)
SessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


def insert_for(db: AsyncSession, model):
    """Dialect-specific INSERT supporting ON CONFLICT clauses"""
    if db.bind.dialect.name == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create all tables that do not exist yet"""
    # Make sure every model is registered on the metadata
    import app.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")


# Dependency to get DB session
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as db:
        yield db
