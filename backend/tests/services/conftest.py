"""Service test fixtures — async DB, Props with a fake SSH connector, client spies, API client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - db_manager is patched for stores that resolve it at call time
    - The API client never starts real SSH or MCP clients: app.state.props uses
      FakeConnector and get_client_factories is overridden with spy factories

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for store and
      route tests (PostgreSQL-specific features are not exercised)
    - StaticPool keeps one connection so the in-memory schema survives across sessions
    - ClientSpy counts start/stop per kind; release-exactly-once is asserted on it
"""

from dataclasses import dataclass, field

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import backstage.infrastructure.database as db_module
import backstage.models  # noqa: F401
from backstage.api.dependencies import get_client_factories
from backstage.core.domain_types import ClientKind
from backstage.db.base import Base
from backstage.infrastructure.database import DatabaseSessionManager
from backstage.main import app
from backstage.services.props_manager import PropsManager
from backstage.services.tool_clients import (
    ClientContext, ClientFactory, ToolClientLifecycle,
)

from tests.services.fake_ssh import FakeConnector


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
def test_db_manager(test_engine, test_session_factory):
    manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    manager.engine = test_engine
    manager._session_factory = test_session_factory
    return manager


@pytest.fixture
def fake_connector():
    return FakeConnector()


@pytest.fixture
def props(fake_connector):
    return PropsManager(fake_connector, command_timeout=2, max_log_entries=50)


# -- Client lifecycle spy ------------------------------------------------------


class FakeToolClient:
    def __init__(self, kind: ClientKind, ctx: ClientContext):
        self.kind = kind
        self.ctx = ctx
        self.closed = False


@dataclass
class ClientSpy:
    """Records every start/stop; start failures are configured per kind."""
    started: list[ClientKind] = field(default_factory=list)
    stopped: list[ClientKind] = field(default_factory=list)
    fail_start: dict[ClientKind, Exception] = field(default_factory=dict)
    fail_stop: dict[ClientKind, Exception] = field(default_factory=dict)
    clients: dict[ClientKind, object] = field(default_factory=dict)

    def factory(self, kind: ClientKind, make=None) -> ClientFactory:
        async def start(ctx: ClientContext):
            self.started.append(kind)
            if kind in self.fail_start:
                raise self.fail_start[kind]
            client = make(ctx) if make else FakeToolClient(kind, ctx)
            self.clients[kind] = client
            return client

        async def stop(client):
            self.stopped.append(kind)
            if kind in self.fail_stop:
                raise self.fail_stop[kind]

        return ClientFactory(kind, start, stop)

    def stop_count(self, kind: ClientKind) -> int:
        return self.stopped.count(kind)


@pytest.fixture
def client_spy():
    return ClientSpy()


@pytest.fixture
def make_lifecycle(client_spy):
    def _make(kinds=(ClientKind.REMOTE_SHELL, ClientKind.BROWSER), user_id="user-1",
              conversation_id=None, makers=None):
        makers = makers or {}
        factories = {k: client_spy.factory(k, makers.get(k)) for k in kinds}
        return ToolClientLifecycle(
            factories, ClientContext(user_id=user_id, conversation_id=conversation_id),
        )
    return _make


# -- API client ----------------------------------------------------------------


@pytest.fixture
async def client(test_db_manager, props, client_spy):
    """FastAPI test client with DB, Props and tool-client factories replaced."""
    previous_manager = db_module.db_manager
    db_module.db_manager = test_db_manager
    app.state.props = props

    remote_shell = client_spy.factory(
        ClientKind.REMOTE_SHELL, lambda ctx: props.capability(ctx.user_id),
    )
    app.dependency_overrides[get_client_factories] = lambda: {
        ClientKind.REMOTE_SHELL: remote_shell,
        ClientKind.BROWSER: client_spy.factory(ClientKind.BROWSER),
    }

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = previous_manager
