"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL. Mail
delivery and blob storage are swapped for in-memory / tmp-dir versions
through FastAPI dependency overrides.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")
os.environ.setdefault("CRON_SECRET", "")

import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from certtracker.auth.service import create_session, hash_password
from certtracker.common.constants import CertificateStatus, UserRole
from certtracker.common.storage import BlobStore, get_attachment_store, get_document_store
from certtracker.database import Base, get_db
from certtracker.main import create_app
from certtracker.notifications.mailer import get_mail_sender

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import certtracker.auth.models  # noqa: F401
import certtracker.certificates.models  # noqa: F401
import certtracker.common.audit  # noqa: F401
import certtracker.documents.models  # noqa: F401
import certtracker.workforce.models  # noqa: F401

from certtracker.auth.models import User
from certtracker.certificates.models import Certificate, CertificateType
from certtracker.workforce.models import Employee, EmployeePosition, Position, PositionRequirement

# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)

ADMIN_PASSWORD = "admin-password-123"
USER_PASSWORD = "user-password-123"
# bcrypt is slow on purpose; hash once per run
_ADMIN_HASH = hash_password(ADMIN_PASSWORD)
_USER_HASH = hash_password(USER_PASSWORD)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from certtracker.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Fake mail sender ────────────────────────────────────────────────

class FakeMailSender:
    """Records every reminder and test e-mail instead of talking SMTP.

    Addresses in ``failing`` get ``False``; addresses in ``raising`` make
    the call raise.
    """

    def __init__(self) -> None:
        self.reminders: list[tuple[str, list]] = []
        self.messages: list[tuple[str, str]] = []
        self.failing: set[str] = set()
        self.raising: set[str] = set()
        self.delivers = True

    async def __call__(self, to_email: str, summaries: list) -> bool:
        self.reminders.append((to_email, list(summaries)))
        if to_email in self.raising:
            raise ConnectionError(f"SMTP connection to {to_email} dropped")
        return to_email not in self.failing

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        self.messages.append((to_email, subject))
        return self.delivers


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
def mail_sender() -> FakeMailSender:
    return FakeMailSender()


@pytest.fixture
def upload_root(tmp_path) -> str:
    return str(tmp_path / "uploads")


@pytest.fixture
async def app(mail_sender, upload_root):
    """Create a fresh app instance with DB, mail and storage overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    application.dependency_overrides[get_mail_sender] = lambda: mail_sender
    application.dependency_overrides[get_attachment_store] = (
        lambda: BlobStore(upload_root, bucket="certificates")
    )
    application.dependency_overrides[get_document_store] = (
        lambda: BlobStore(upload_root, bucket="documents")
    )
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _days_from_now(days: float) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


async def make_position(
    db: AsyncSession,
    title: Optional[str] = None,
    *,
    department: Optional[str] = "Operations",
    required: tuple[str, ...] = (),
) -> Position:
    """Insert a position whose requirements name the given certificate types."""
    position = Position(title=title or f"Position {uuid.uuid4().hex[:6]}", department=department)
    db.add(position)
    await db.flush()
    for type_name in required:
        cert_type = await make_certificate_type(db, type_name)
        db.add(PositionRequirement(position_id=position.id, certificate_type_id=cert_type.id))
    await db.commit()
    return position


async def make_certificate_type(
    db: AsyncSession,
    name: str,
    *,
    validity_months: int = 12,
) -> CertificateType:
    """Return the certificate type called *name*, inserting it when missing."""
    existing = (
        await db.execute(select(CertificateType).where(CertificateType.name == name))
    ).scalars().first()
    if existing is not None:
        return existing
    cert_type = CertificateType(name=name, validity_months=validity_months)
    db.add(cert_type)
    await db.flush()
    return cert_type


async def make_employee(
    db: AsyncSession,
    name: str = "Ann Lee",
    *,
    email: Optional[str] = "ann.lee@example.com",
    positions: tuple[Position, ...] = (),
    is_active: bool = True,
) -> Employee:
    employee = Employee(
        name=name,
        email=email,
        is_active=is_active,
        primary_position_id=positions[0].id if positions else None,
    )
    employee.position_links = [
        EmployeePosition(position_id=pos.id, sort_order=order)
        for order, pos in enumerate(positions)
    ]
    db.add(employee)
    await db.commit()
    return employee


async def make_certificate(
    db: AsyncSession,
    staff_member: str = "Ann Lee",
    cert_type: str = "First Aid",
    *,
    expires_in_days: float = 200,
    issued_days_ago: float = 165,
    position: Optional[Position] = None,
    status: CertificateStatus = CertificateStatus.active,
) -> Certificate:
    cert = Certificate(
        staff_member=staff_member,
        cert_type=cert_type,
        position_id=position.id if position else None,
        issue_date=_days_from_now(-issued_days_ago),
        expiration_date=_days_from_now(expires_in_days),
        status=status,
    )
    db.add(cert)
    await db.commit()
    return cert


# ── Auth helpers ────────────────────────────────────────────────────

async def _headers_for(db: AsyncSession, user: User) -> dict[str, str]:
    token, _ = await create_session(db, user, "pytest")
    await db.commit()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def admin_user(db) -> User:
    user = User(
        username="admin",
        email="admin@example.com",
        password_hash=_ADMIN_HASH,
        role=UserRole.admin,
    )
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def regular_user(db) -> User:
    user = User(
        username="viewer",
        email="viewer@example.com",
        password_hash=_USER_HASH,
        role=UserRole.user,
    )
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def admin_headers(db, admin_user) -> dict[str, str]:
    """Bearer headers for an administrator with a persisted session."""
    return await _headers_for(db, admin_user)


@pytest.fixture
async def user_headers(db, regular_user) -> dict[str, str]:
    """Bearer headers for a non-admin user with a persisted session."""
    return await _headers_for(db, regular_user)
