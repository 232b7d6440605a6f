"""Database engine, session factory, and declarative base.

All authorization tables (roles, user profiles, role and warehouse
assignments, permission snapshots, access denials) live in one schema
under a single DeclarativeBase.

`async_session` is used directly rather than through a per-request
dependency: the context reads run concurrently and the audit writes are
fire-and-forget, so each opens its own session.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from wms.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=20,
    max_overflow=10,
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    """Models for the WMS authorization schema."""
    pass

