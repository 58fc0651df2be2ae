"""pytest fixtures for tokenmeta tests.

Provides:
- session_factory: Function-scoped SQLite database (file in tmp_path) with tables created
- session: Function-scoped database session
- uow_factory: Function-scoped UnitOfWork factory
- counter / metrics: Fresh shared counters per test
- make_resolution: Builds a TokenMetadataResolution around a StubResolver
- make_token: Builds unsaved TokenMetadata records
"""

import os

# Skip production config validation before any Settings() is created
os.environ.setdefault("APP_ENV", "test")

from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import tokenmeta.models  # noqa: E402, F401
from tokenmeta.core.counter import UpdateIDCounter  # noqa: E402
from tokenmeta.core.database import setup_db_session  # noqa: E402
from tokenmeta.core.metrics import Metrics  # noqa: E402
from tokenmeta.models.token_metadata import MetadataStatus, TokenMetadata  # noqa: E402
from tokenmeta.services.resolution import TokenMetadataResolution  # noqa: E402
from tokenmeta.uow import create_uow_factory  # noqa: E402

CONTRACT = "KT1RJ6PbjHpwc3M5rw5s2Nbmefwbuwbdxton"


class StubResolver:
    """Resolver returning (or raising) scripted outcomes in order.

    The last outcome repeats once the script is exhausted.
    """

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls: list[tuple[str, str, str]] = []

    async def resolve(self, network: str, contract: str, link: str) -> bytes:
        self.calls.append((network, contract, link))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path):
    """Provide a session factory bound to a fresh SQLite database."""
    factory = setup_db_session(f"sqlite+aiosqlite:///{tmp_path / 'tokenmeta.db'}")
    engine = factory.kw["bind"]

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield factory

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide function-scoped database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def uow_factory(session_factory):
    """Provide function-scoped UnitOfWork factory."""
    return create_uow_factory(session_factory)


@pytest.fixture
def counter() -> UpdateIDCounter:
    return UpdateIDCounter()


@pytest.fixture
def metrics() -> Metrics:
    return Metrics()


@pytest.fixture
def make_resolution(counter, metrics):
    """Return a builder: make_resolution(*outcomes, max_retry_count=3, timeout_seconds=30)."""

    def _make(*outcomes, max_retry_count: int = 3, timeout_seconds: float = 30.0):
        resolver = StubResolver(*outcomes)
        resolution = TokenMetadataResolution(
            resolver=resolver,
            counter=counter,
            metrics=metrics,
            max_retry_count=max_retry_count,
            timeout_seconds=timeout_seconds,
        )
        return resolution, resolver

    return _make


@pytest.fixture
def make_token():
    """Return a builder for unsaved TokenMetadata records awaiting resolution."""

    def _make(token_id: int = 1, **overrides) -> TokenMetadata:
        values = {
            "network": "mainnet",
            "contract": CONTRACT,
            "token_id": token_id,
            "status": MetadataStatus.NEW,
            "metadata_json": '{"name":"Token"}',
            "link": f"ipfs://QmToken{token_id}",
            "update_id": 1,
        }
        values.update(overrides)
        return TokenMetadata(**values)

    return _make
