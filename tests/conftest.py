"""Test fixtures and configuration."""

import logging
import os
import sys

import pytest
import pytest_asyncio
import structlog
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

# Set before the settings singleton is created
os.environ["ENVIRONMENT"] = "testing"

from finance_tracker.config import settings  # noqa: E402
from finance_tracker.logger import get_logger  # noqa: E402

logger = get_logger(__name__)

# In-memory SQLite by default; point TEST_DATABASE_URL at PostgreSQL to run against it
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # One shared connection so every session sees the same in-memory database
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {"poolclass": NullPool}


# --- Structlog Configuration for Tests ---
@pytest.fixture(autouse=True, scope="session")
def configure_structlog_for_tests():
    """Configure structlog for proper capsys capture in tests."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(colors=False),
        foreign_pre_chain=processors[:-1],
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG)

    yield

    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def restore_settings():
    """Undo per-test tweaks to the settings singleton."""
    saved = {
        "enforce_usage_limits": settings.enforce_usage_limits,
        "free_transactions_limit": settings.free_transactions_limit,
        "rule_condition_logic_enforced": settings.rule_condition_logic_enforced,
        "duplicate_check_batch_size": settings.duplicate_check_batch_size,
    }
    yield
    for name, value in saved.items():
        setattr(settings, name, value)


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a test engine with a fresh schema.

    Function-scoped: the schema is created before and dropped after every
    test, which is cheap for in-memory SQLite.
    """
    from finance_tracker.database import Base
    from finance_tracker import models  # noqa: F401

    engine = create_async_engine(TEST_DATABASE_URL, echo=False, **_engine_kwargs(TEST_DATABASE_URL))

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(db_engine):
    """Route API handlers to the test engine."""
    from finance_tracker import database

    test_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    previous = database.set_test_session_maker(test_maker)
    yield test_maker
    database.set_test_session_maker(previous)


@pytest_asyncio.fixture(scope="function")
async def db(session_maker):
    """Test database session.

    Tests that call the API commit their setup data first so that the
    request sessions can see it.
    """
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def test_user(db):
    """Create a committed test user."""
    from tests.factories import UserFactory

    user = await UserFactory.create_async(db)
    await db.commit()
    return user


@pytest_asyncio.fixture(scope="function")
async def client(session_maker, test_user):
    """Create async test client authenticated as ``test_user``."""
    from finance_tracker.main import app
    from finance_tracker.security import create_access_token

    token = create_access_token(data={"sub": str(test_user.id)})
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": f"Bearer {token}"},
    ) as client_instance:
        yield client_instance


@pytest_asyncio.fixture(scope="function")
async def public_client(session_maker):
    """Create async test client without auth headers."""
    from finance_tracker.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client_instance:
        yield client_instance
