# tests/conftest.py
from __future__ import annotations

import asyncio
import base64
import os
from collections.abc import Callable, Generator, Iterator
from pathlib import Path
from typing import Any

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-pytest-only")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from securechat.api.dependencies import get_file_storage, get_registry  # noqa: E402
from securechat.db.session import Base, configure_sqlite  # noqa: E402
from securechat.db.session import get_db as app_get_session  # noqa: E402
from securechat.main import app as fastapi_app  # noqa: E402
from securechat.models import User  # noqa: E402
from securechat.services.auth import AuthService  # noqa: E402
from securechat.services.files import FileStorageService  # noqa: E402
from securechat.services.identity import IdentityStore  # noqa: E402
from securechat.services.message_store import MessageStore  # noqa: E402
from securechat.services.messaging import MessagingService  # noqa: E402
from securechat.services.relationships import RelationshipEngine  # noqa: E402
from securechat.services.sessions import SessionRegistry  # noqa: E402

TEST_DB_URL = "sqlite://"
TEST_PASSWORD = "correct-horse"


class RecordingChannel:
    """In-memory stand-in for a WebSocket that records pushed payloads."""

    def __init__(self, *, fail: bool = False, delay: float = 0.0) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail = fail
        self.delay = delay
        self.closed = False

    async def send_json(self, payload: dict[str, Any]) -> None:
        if self.closed:
            raise RuntimeError("channel closed")
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("send failed")
        self.sent.append(payload)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = configure_sqlite(
        create_engine(
            TEST_DB_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def registry() -> SessionRegistry:
    return SessionRegistry(max_channels_per_user=1, delivery_timeout=0.5)


@pytest.fixture()
def upload_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    registry: SessionRegistry,
    upload_dir: Path,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_file_storage] = lambda: FileStorageService(db_session, upload_dir)
    try:
        yield
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    # Not used as a context manager so startup hooks never touch a real database.
    return TestClient(app, base_url="http://test")


@pytest.fixture()
def identities(db_session: Session) -> IdentityStore:
    return IdentityStore(db_session)


@pytest.fixture()
def auth_service(db_session: Session) -> AuthService:
    return AuthService(db_session)


@pytest.fixture()
def message_store(db_session: Session) -> MessageStore:
    return MessageStore(db_session)


@pytest.fixture()
def relationships(db_session: Session, message_store: MessageStore) -> RelationshipEngine:
    return RelationshipEngine(db_session, message_store=message_store)


@pytest.fixture()
def messaging(
    db_session: Session,
    registry: SessionRegistry,
    relationships: RelationshipEngine,
    message_store: MessageStore,
) -> MessagingService:
    return MessagingService(
        db_session,
        registry=registry,
        relationships=relationships,
        store=message_store,
    )


@pytest.fixture()
def make_user(identities: IdentityStore) -> Callable[..., User]:
    def _make(username: str, nickname: str | None = None) -> User:
        return identities.register(username, TEST_PASSWORD, nickname)

    return _make


@pytest.fixture()
def alice(make_user: Callable[..., User]) -> User:
    return make_user("alice", "Alice")


@pytest.fixture()
def bob(make_user: Callable[..., User]) -> User:
    return make_user("bob", "Bob")


@pytest.fixture()
def carol(make_user: Callable[..., User]) -> User:
    return make_user("carol")


@pytest.fixture()
def befriend(relationships: RelationshipEngine) -> Callable[[User, User], None]:
    """Make two users friends through the normal request/accept flow."""

    def _befriend(requester: User, addressee: User) -> None:
        relationships.send_request(requester.id, addressee.id)
        relationships.accept_request(requester.id, addressee.id)

    return _befriend


@pytest.fixture()
def headers_for() -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        token = AuthService.issue_session_token(user)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def alice_headers(alice: User, headers_for: Callable[[User], dict[str, str]]) -> dict[str, str]:
    return headers_for(alice)


@pytest.fixture()
def bob_headers(bob: User, headers_for: Callable[[User], dict[str, str]]) -> dict[str, str]:
    return headers_for(bob)


def encode_public_key(raw: bytes) -> str:
    return base64.b64encode(raw).decode()


@pytest.fixture()
def signing_public_key() -> str:
    public = Ed25519PrivateKey.generate().public_key()
    return encode_public_key(public.public_bytes(Encoding.Raw, PublicFormat.Raw))


@pytest.fixture()
def key_exchange_public_key() -> str:
    public = X25519PrivateKey.generate().public_key()
    return encode_public_key(public.public_bytes(Encoding.Raw, PublicFormat.Raw))


@pytest.fixture()
def channel_factory() -> Callable[..., RecordingChannel]:
    """Build recording channels; pass ``fail=True`` or ``delay=`` to misbehave."""
    return RecordingChannel


@pytest.fixture()
def user_password() -> str:
    """Password every fixture user is registered with."""
    return TEST_PASSWORD
