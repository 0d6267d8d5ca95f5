"""Async engine, session factory and the declarative base."""
import logging

from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

from edify.config import Settings, get_settings

logger = logging.getLogger(__name__)

SSL_HOST_MARKERS = ("heroku", "amazonaws", "supabase")
PRODUCTION_POOL_CAP = 5


def engine_options(settings: Settings) -> dict:
    """Keyword arguments for ``create_async_engine`` derived from the settings."""
    url = settings.database_url
    production = settings.environment == "production"
    connect_args = {}
    if not make_url(url).drivername.startswith("sqlite"):
        if production or any(marker in url for marker in SSL_HOST_MARKERS):
            connect_args["ssl"] = "require"

    pool_size = max(1, settings.db_pool_size)
    max_overflow = max(0, settings.db_max_overflow)
    if production:
        pool_size = min(pool_size, PRODUCTION_POOL_CAP)
        max_overflow = min(max_overflow, PRODUCTION_POOL_CAP)

    return {
        "echo": settings.environment == "development",
        "connect_args": connect_args,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
    }


_settings = get_settings()
_options = engine_options(_settings)
engine = create_async_engine(_settings.database_url, **_options)
logger.debug(
    f"Database engine ready (ssl={'ssl' in _options['connect_args']}, pool_size={_options['pool_size']})"
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db():
    """FastAPI dependency yielding a request-scoped session."""
    async with AsyncSessionLocal() as session:
        yield session
