"""Database engine, session factory, and declarative base.

All ledger tables share one DeclarativeBase.  The ledger owns its own
transactions (see services/ledger.py): routers never open a session
themselves, they call the ledger, which checks sessions out of
``async_session``.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from growledger.config import settings


def _engine_kwargs(url: str) -> dict:
    # SQLite (tests, local dev) does not take pool sizing arguments
    if url.startswith("sqlite"):
        return {}
    return {"pool_size": 20, "max_overflow": 10}


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_kwargs(settings.database_url),
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# ── Base class ──────────────────────────────────────────────

class Base(DeclarativeBase):
    """Every ledger model (scopes, regulated entities, counters, audit log)."""
    pass
