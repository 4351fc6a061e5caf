"""
Pytest fixtures for zonekeeper tests.

Everything runs against an in-memory SQLite database; the nginx test/reload
commands are replaced by a stub controller and the generated config is
written under a temporary directory.
"""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ZONEKEEPER_ALLOW_INSECURE", "true")
os.environ.setdefault("RESYNC_INTERVAL_MINUTES", "0")

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from zonekeeper.db.base import Base
from zonekeeper.db.session import get_db
from zonekeeper.main import app
from zonekeeper.models import config_change as _config_change  # noqa: F401
from zonekeeper.models import powerdns as _powerdns  # noqa: F401
from zonekeeper.models import proxy_route as _proxy_route  # noqa: F401
from zonekeeper.models import record as _record  # noqa: F401
from zonekeeper.models.user import User
from zonekeeper.models.zone import Zone
from zonekeeper.services.nginx import CommandResult, NginxConfigGenerator
from zonekeeper.services.proxy import ProxyManager, get_proxy_manager
from zonekeeper.settings import ProxyConfig

PROXY_IP = "72.62.74.183"


class StubController:
    """Records nginx test/reload calls instead of running them."""

    def __init__(self, test_ok: bool = True, reload_ok: bool = True):
        self.test_ok = test_ok
        self.reload_ok = reload_ok
        self.calls: list[str] = []

    def validate_config(self) -> CommandResult:
        self.calls.append("test")
        return CommandResult(self.test_ok, "" if self.test_ok else "syntax error")

    def reload(self) -> CommandResult:
        self.calls.append("reload")
        return CommandResult(self.reload_ok, "" if self.reload_ok else "reload failed")


@pytest.fixture
def sync_db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    TestSession = sessionmaker(bind=engine, autoflush=False)
    session = TestSession()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def proxy_config(tmp_path) -> ProxyConfig:
    return ProxyConfig(proxy_ip=PROXY_IP, sites_path=str(tmp_path / "sites-enabled"))


@pytest.fixture
def controller() -> StubController:
    return StubController()


@pytest.fixture
def proxy_manager(proxy_config, controller) -> ProxyManager:
    return ProxyManager(proxy_config, NginxConfigGenerator(proxy_config, controller))


@pytest.fixture
def sync_client(sync_db_session, proxy_manager):
    """Create test client with sync DB and proxy manager overrides."""

    def override_get_db():
        yield sync_db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_proxy_manager] = lambda: proxy_manager
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_user(db: Session, email: str, password: str = "testpassword") -> User:
    from zonekeeper.security import hash_password

    user = User(email=email, password_hash=hash_password(password), name=email.split("@")[0])
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def test_user(sync_db_session):
    """Create a test user for authentication."""
    return make_user(sync_db_session, "owner@example.com")


@pytest.fixture
def other_user(sync_db_session):
    return make_user(sync_db_session, "other@example.com")


@pytest.fixture
def authenticated_client(sync_client, test_user):
    _ = test_user
    resp = sync_client.post(
        "/api/auth/login",
        json={"email": "owner@example.com", "password": "testpassword"},
    )
    assert resp.status_code == 200
    return sync_client


@pytest.fixture
def zone(sync_db_session, test_user) -> Zone:
    """An application zone owned by ``test_user`` with its authoritative domain."""
    from zonekeeper.services import powerdns

    z = Zone(user_id=test_user.id, domain="example.com", status="active")
    sync_db_session.add(z)
    powerdns.ensure_domain(sync_db_session, "example.com")
    sync_db_session.commit()
    sync_db_session.refresh(z)
    return z
