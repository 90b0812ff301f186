"""Database connection helpers."""

from collections.abc import Iterable, Sequence

from typing import Any

from sqlalchemy import func, inspect
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.dialects.postgresql import Insert, insert as pg_insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from dotenv import load_dotenv

from src.helpers.config import get_optional_env, get_required_env
from src.helpers.constants import DB_POOL_SIZE


# Load environment variables from .env file
load_dotenv()

Base = declarative_base()

ASYNC_DRIVER_PREFIX = "postgresql+psycopg://"


def _normalize_driver(url: str) -> str:
    """Force the psycopg (version 3) async driver onto a PostgreSQL URL."""
    for prefix in ("postgresql+psycopg://", "postgresql://", "postgres://"):
        if url.startswith(prefix):
            return ASYNC_DRIVER_PREFIX + url[len(prefix) :]
    return url


def get_database_url(database_url: str | None = None) -> str:
    """Get the database URL from a parameter or environment variables.

    The explicit value wins, then DATABASE_URL, then the POSTGRE_* pieces.

    Args:
        database_url: Optional URL to use directly

    Returns:
        str: PostgreSQL database URL using the async psycopg driver

    Raises:
        ValueError: If required environment variables are not set or the
            URL cannot be parsed
    """
    url = database_url or get_optional_env("DATABASE_URL")
    if url:
        try:
            make_url(url)
        except ArgumentError as e:
            msg = f"Invalid database URL: {e}"
            raise ValueError(msg) from e
        return _normalize_driver(url)

    postgre_host = get_optional_env("POSTGRE_HOST")
    if not postgre_host:
        msg = (
            "Database URL not provided. Use --database-url or set DATABASE_URL "
            "(or POSTGRE_HOST) in environment variables"
        )
        raise ValueError(msg)

    postgre_port = get_optional_env("POSTGRE_PORT", "5432")
    postgre_user = get_required_env("POSTGRE_USER")
    postgre_password = get_required_env("POSTGRE_PASSWORD")
    postgre_db = get_required_env("POSTGRE_DB")

    return (
        ASYNC_DRIVER_PREFIX
        + f"{postgre_user}:{postgre_password}"
        + f"@{postgre_host}:{postgre_port}"
        + f"/{postgre_db}"
    )


def create_engine(database_url: str, pool_size: int = DB_POOL_SIZE) -> AsyncEngine:
    """Create an async engine for the given URL.

    Args:
        database_url: PostgreSQL URL (driver prefix is normalised)
        pool_size: Maximum number of pooled connections

    Returns:
        AsyncEngine instance
    """
    return create_async_engine(
        _normalize_driver(database_url),
        echo=False,
        pool_size=pool_size,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory used for every unit of work.

    Args:
        engine: Async engine to bind sessions to

    Returns:
        Session factory producing AsyncSession objects
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


def upsert_statement[DBModelType](
    db_model_class: type[DBModelType],
    rows: Sequence[dict[str, Any]],
    *,
    index_elements: Iterable[str] | None = None,
    touch_columns: Iterable[str] = (),
) -> Insert:
    """Build a PostgreSQL INSERT ... ON CONFLICT DO UPDATE statement.

    Every column present in the rows that is not part of the conflict target
    is overwritten from EXCLUDED. Columns listed in touch_columns are set to
    now() on both insert and update.

    Args:
        db_model_class: The SQLAlchemy model class (e.g., BlockDB)
        rows: Row dictionaries keyed by column name, all with the same keys
        index_elements: Conflict target columns (default: primary key)
        touch_columns: Timestamp columns to stamp with now()

    Returns:
        Executable insert statement

    Raises:
        ValueError: If rows is empty or the model class cannot be inspected

    Examples:
        stmt = upsert_statement(
            BlockDB,
            [{"slot": 1, "blockhash": "abc"}],
            touch_columns=["processed_at"],
        )
        await session.execute(stmt)
    """
    if not rows:
        msg = "Cannot build an upsert statement without rows"
        raise ValueError(msg)

    if index_elements is None:
        mapper = inspect(db_model_class)
        if not mapper:
            msg = f"Cannot inspect {db_model_class}"
            raise ValueError(msg)
        conflict_columns = [col.name for col in mapper.primary_key]
    else:
        conflict_columns = list(index_elements)

    touched = list(touch_columns)
    values = [{**row, **dict.fromkeys(touched, func.now())} for row in rows]

    stmt = pg_insert(db_model_class).values(values)

    update_dict: dict[str, Any] = {
        col: stmt.excluded[col] for col in rows[0] if col not in conflict_columns
    }
    for col in touched:
        update_dict[col] = func.now()

    return stmt.on_conflict_do_update(
        index_elements=conflict_columns,
        set_=update_dict,
    )


__all__ = [
    "Base",
    "create_engine",
    "create_session_factory",
    "get_database_url",
    "upsert_statement",
]
