import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("ENABLE_TWILIO_MOCK", "true")

from datetime import datetime, timezone
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from inbox_api.database import Base, get_db
from inbox_api.dependencies import get_flow_sessions, get_tenant_cache
from inbox_api.main import app
from inbox_api.models import Conversation, Message, Tenant
from inbox_api.services.flow_service import FlowSessions
from inbox_api.services.tenant_cache import TenantCache


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def make_tenant(db, slug, **overrides):
    values = {
        "slug": slug,
        "name": slug.title(),
        "environment": "sandbox",
        "created_at": datetime.now(timezone.utc),
    }
    values.update(overrides)
    tenant = Tenant(**values)
    db.add(tenant)
    db.commit()
    return tenant


@pytest.fixture
def acme(db):
    return make_tenant(
        db,
        "acme",
        provider_account_id="AC123",
        provider_auth_secret="secret-token",
        sender_address="whatsapp:+14155238886",
    )


@pytest.fixture
def globex(db):
    return make_tenant(db, "globex")


@pytest.fixture
def default_tenant(db):
    return make_tenant(db, "crunchypaws", name="Crunchy Paws")


def make_conversation(db, tenant, phone="whatsapp:+50255550001", **overrides):
    now = datetime.now(timezone.utc)
    values = {
        "tenant_id": tenant.id,
        "phone_number": phone,
        "mode": "BOT",
        "human_handled": False,
        "created_at": now,
        "updated_at": now,
    }
    values.update(overrides)
    conversation = Conversation(**values)
    db.add(conversation)
    db.commit()
    return conversation


def add_messages(db, conversation, count, direction="inbound"):
    now = datetime.now(timezone.utc)
    messages = [
        Message(conversation_id=conversation.id, direction=direction, body=f"msg {i}", created_at=now)
        for i in range(1, count + 1)
    ]
    db.add_all(messages)
    db.commit()
    return messages


@pytest.fixture
def flow_sessions():
    return FlowSessions()


@pytest.fixture
def tenant_cache(session_factory):
    return TenantCache(session_factory)


@pytest.fixture
def api(db, tenant_cache, flow_sessions):
    """Route dependencies wired to the test database."""

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_tenant_cache] = lambda: tenant_cache
    app.dependency_overrides[get_flow_sessions] = lambda: flow_sessions
    yield app
    app.dependency_overrides.clear()


def client_for(host: str) -> TestClient:
    return TestClient(app, base_url=f"http://{host}")


@pytest.fixture
def acme_client(api, acme):
    return client_for("acme.inbox.example.com")


@pytest.fixture
def globex_client(api, globex):
    return client_for("globex.inbox.example.com")
