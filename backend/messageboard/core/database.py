import logging

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool
from .config import settings
from .errors import ConnectionFailure

logger = logging.getLogger(__name__)


def build_engine(url: str, *, echo: bool = False, ssl: bool = False, pool_size: int = 5):
    if url.startswith("sqlite"):
        # One connection per checkout, so nothing is shared between event loops.
        return create_async_engine(url, echo=echo, poolclass=NullPool)

    connect_args = {
        "server_settings": {
            "application_name": "messageboard"
        }
    }
    if ssl:
        connect_args["ssl"] = "require"
    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=pool_size,
        connect_args=connect_args,
    )


engine = build_engine(
    settings.ASYNC_DATABASE_URL,
    echo=settings.DB_ECHO,
    ssl=settings.DB_SSL,
    pool_size=settings.DB_POOL_SIZE,
)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

Base = declarative_base()


async def check_connection(bind=None):
    """Run a trivial query, raising ConnectionFailure if the database is unreachable."""
    bind = bind or engine
    try:
        async with bind.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (DBAPIError, OSError) as exc:
        raise ConnectionFailure(f"cannot reach database: {exc}") from exc


async def init_models(bind=None):
    # models must be imported so their tables are registered on Base.metadata
    from messageboard.models import message  # noqa: F401

    bind = bind or engine
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Schema ready")
