"""Test configuration."""
import os
import uuid
from collections.abc import AsyncIterator, Callable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

# --- Config env par défaut
os.environ.setdefault("DATABASE_URL", "sqlite:///./admin_test.db")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("STATS_BROADCAST_ENABLED", "false")
os.environ.setdefault("PROMETHEUS_ENABLED", "false")
os.environ.setdefault("AUTH_SERVICE_URL", "http://auth.test")

from app.main import app  # noqa: E402
from app.db import get_db, get_session_factory, schema_translate_map  # noqa: E402
from app.models import (  # noqa: E402
    AnalysisJob,
    Base,
    Conversation,
    JobStatus,
    Message,
    School,
    User,
    UserProfile,
)
from app.schemas.auth import AdminPrincipal  # noqa: E402
from app.security import get_auth_client, require_admin  # noqa: E402
from app.services.alerts import InMemoryAlertStore, get_alert_store  # noqa: E402
from app.services.realtime import Broadcaster, get_broadcaster  # noqa: E402
from app.utils.errors import UnauthorizedError  # noqa: E402

DB_PATH = Path("./admin_test.db")

# --- (1) Reset DB fichier au début de la session
if DB_PATH.exists():
    DB_PATH.unlink()

_base_engine = create_engine(
    os.environ["DATABASE_URL"],
    connect_args={"check_same_thread": False},
    future=True,
)


# pysqlite needs explicit BEGIN for SAVEPOINT-based test isolation.
@event.listens_for(_base_engine, "connect")
def _sqlite_connect(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(_base_engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")


engine = _base_engine.execution_options(schema_translate_map=schema_translate_map(os.environ["DATABASE_URL"]))
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False,
                                   future=True, expire_on_commit=False)

# --- (2) Construire le schéma depuis les modèles
Base.metadata.create_all(bind=engine)


class FakeAuthClient:
    """Accepts every token except ``"bad-token"``."""

    def __init__(self, principal: AdminPrincipal) -> None:
        self.principal = principal
        self.verified: list[str] = []

    def verify_token(self, token: str) -> AdminPrincipal:
        self.verified.append(token)
        if token == "bad-token":
            raise UnauthorizedError("Invalid or expired token")
        return self.principal


@pytest.fixture
def db_session() -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection, join_transaction_mode="create_savepoint")
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def admin_principal() -> AdminPrincipal:
    return AdminPrincipal(id=str(uuid.uuid4()), email="admin@example.com", username="admin", user_type="admin")


@pytest.fixture
def alert_store() -> InMemoryAlertStore:
    return InMemoryAlertStore(capacity=1000)


@pytest.fixture
def broadcaster() -> Broadcaster:
    return Broadcaster()


@pytest.fixture
def fake_auth_client(admin_principal: AdminPrincipal) -> FakeAuthClient:
    return FakeAuthClient(admin_principal)


@pytest.fixture(autouse=True)
def override_dependencies(
    db_session: Session,
    admin_principal: AdminPrincipal,
    alert_store: InMemoryAlertStore,
    broadcaster: Broadcaster,
    fake_auth_client: FakeAuthClient,
) -> Iterator[None]:
    def _get_db() -> Iterator[Session]:
        yield db_session

    def _short_lived_session() -> Session:
        # Nested savepoint on the test connection: sees flushed rows, closing discards only its own work.
        return TestingSessionLocal(bind=db_session.connection(), join_transaction_mode="create_savepoint")

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: _short_lived_session
    app.dependency_overrides[require_admin] = lambda: admin_principal
    app.dependency_overrides[get_alert_store] = lambda: alert_store
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    app.dependency_overrides[get_auth_client] = lambda: fake_auth_client
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def make_user(db_session: Session) -> Callable[..., User]:
    def _factory(
        username: str | None = None,
        *,
        email: str | None = None,
        token_balance: int = 0,
        user_type: str = "user",
        is_active: bool = True,
        school_id: int | None = None,
        created_at: datetime | None = None,
    ) -> User:
        suffix = uuid.uuid4().hex[:8]
        username = username or f"user-{suffix}"
        user = User(
            username=username,
            email=email or f"{username}-{suffix}@example.com",
            token_balance=token_balance,
            user_type=user_type,
            is_active=is_active,
        )
        if created_at is not None:
            user.created_at = created_at
            user.updated_at = created_at
        db_session.add(user)
        db_session.flush()
        if school_id is not None:
            db_session.add(UserProfile(user_id=user.id, school_id=school_id))
            db_session.flush()
        return user

    return _factory


@pytest.fixture
def make_job(db_session: Session) -> Callable[..., AnalysisJob]:
    def _factory(
        user_id: uuid.UUID,
        *,
        status: str = JobStatus.QUEUED,
        assessment_name: str = "AI-Driven Talent Mapping",
        created_at: datetime | None = None,
        processing_seconds: int | None = None,
        result_id: uuid.UUID | None = None,
        priority: int = 0,
    ) -> AnalysisJob:
        created = created_at or datetime.now(tz=UTC)
        job = AnalysisJob(
            job_id=f"job-{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            status=status,
            assessment_name=assessment_name,
            created_at=created,
            updated_at=created,
            result_id=result_id,
            priority=priority,
        )
        if processing_seconds is not None:
            job.processing_started_at = created
            job.completed_at = created + timedelta(seconds=processing_seconds)
        db_session.add(job)
        db_session.flush()
        return job

    return _factory


@pytest.fixture
def make_conversation(db_session: Session) -> Callable[..., Conversation]:
    def _factory(
        user_id: uuid.UUID,
        *,
        title: str = "New Conversation",
        status: str = "active",
        messages: int = 0,
        created_at: datetime | None = None,
    ) -> Conversation:
        created = created_at or datetime.now(tz=UTC)
        conversation = Conversation(
            user_id=user_id, title=title, status=status, created_at=created, updated_at=created
        )
        db_session.add(conversation)
        db_session.flush()
        for index in range(messages):
            db_session.add(
                Message(
                    conversation_id=conversation.id,
                    sender_type="user" if index % 2 == 0 else "assistant",
                    content=f"message {index}",
                    created_at=created + timedelta(seconds=index),
                )
            )
        db_session.flush()
        return conversation

    return _factory


@pytest.fixture
def make_school(db_session: Session) -> Callable[..., School]:
    def _factory(name: str = "SMA Negeri 1", *, city: str | None = "Bandung", province: str | None = "Jawa Barat") -> School:
        school = School(name=name, city=city, province=province)
        db_session.add(school)
        db_session.flush()
        return school

    return _factory
