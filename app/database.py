import os

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from app.config import settings


def normalize_database_url(url: str) -> str:
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def _enable_foreign_keys(dbapi_conn, connection_record):
    # Photo rows cascade with their profile only when SQLite enforces FKs
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str | None = None) -> AsyncEngine:
    url = normalize_database_url(database_url or settings.database_url)
    if not url.startswith("sqlite"):
        return create_async_engine(url, echo=False, pool_size=5, max_overflow=10, pool_pre_ping=True)

    db_path = make_url(url).database
    if db_path and db_path != ":memory:":
        os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
    sqlite_engine = create_async_engine(url, echo=False)
    event.listen(sqlite_engine.sync_engine, "connect", _enable_foreign_keys)
    return sqlite_engine


engine = build_engine()
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def create_tables(target_engine: AsyncEngine | None = None):
    async with (target_engine or engine).begin() as conn:
        from app.models import profile, photo  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)
