"""Tests for database module."""

from unittest.mock import AsyncMock, MagicMock

from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from featured_image_helper.core.database import _get_engine_kwargs, check_database_connection
from featured_image_helper.models import Option


async def test_session_provides_working_connection(test_db: AsyncSession) -> None:
    """Test that the session can execute queries."""
    result = await test_db.execute(text("SELECT 1"))
    assert result.scalar() == 1


async def test_option_json_values_round_trip(test_db: AsyncSession) -> None:
    test_db.add(Option(name="batch_size", value=5))
    test_db.add(Option(name="admin_email", value="ops@example.com"))
    await test_db.commit()

    result = await test_db.execute(select(Option).order_by(Option.name))
    assert [(option.name, option.value) for option in result.scalars()] == [
        ("admin_email", "ops@example.com"),
        ("batch_size", 5),
    ]


async def test_check_database_connection(test_db: AsyncSession) -> None:
    assert await check_database_connection(test_db) is True


async def test_check_database_connection_failure() -> None:
    session = MagicMock()
    session.execute = AsyncMock(side_effect=OperationalError("SELECT 1", {}, Exception("down")))

    assert await check_database_connection(session) is False


def test_engine_kwargs_sqlite_has_no_pool_options() -> None:
    kwargs = _get_engine_kwargs("sqlite+aiosqlite:///:memory:")
    assert "pool_size" not in kwargs


def test_engine_kwargs_postgres_pool() -> None:
    kwargs = _get_engine_kwargs("postgresql+asyncpg://localhost/featured_images")
    assert kwargs["pool_size"] == 5
    assert kwargs["pool_pre_ping"] is True
