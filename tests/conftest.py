"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, rebuilt for every test
- Fake object storage and mail service wired in through dependency overrides
- Users with minted access tokens
- HTTPX AsyncClient bound to the app
"""
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import AsyncGenerator, Dict, List, Optional, Sequence

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DB_CREATE_TABLES"] = "False"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["FRONTEND_URL"] = "http://frontend.test"
os.environ["TAX_RATE"] = "0"

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from invgen.main import app
from invgen.core.database import Base, get_db
from invgen.core.security import create_access_token, get_password_hash
from invgen.core.storage import ObjectStorage, get_storage
from invgen.models import Client, Invoice, InvoiceItem, InvoiceStatus, User
from invgen.services.email_service import EmailAttachment, EmailService, get_email_service
from invgen.utils.exceptions import MailDeliveryError, StorageError

PASSWORD = "correct-horse-battery"


# =============================================================================
# Fakes
# =============================================================================

class InMemoryStorage(ObjectStorage):
    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.uploaded: List[str] = []
        self.removed: List[str] = []
        self.fail_upload = False

    async def create_signed_upload_url(self, path: str) -> dict:
        return {"url": f"https://storage.test/upload/{path}?signature=abc", "path": path}

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        if self.fail_upload:
            raise StorageError("upload refused")
        self.objects[path] = data
        self.uploaded.append(path)

    async def download(self, path: str) -> bytes:
        return self.objects[path]

    async def get_public_url(self, path: str) -> str:
        return f"https://storage.test/{path}"

    async def remove(self, path: str) -> None:
        self.objects.pop(path, None)
        self.removed.append(path)


@dataclass
class SentEmail:
    to_email: str
    subject: str
    html_content: str
    text_content: Optional[str]
    attachments: Sequence[EmailAttachment] = field(default_factory=list)


class FakeEmailService(EmailService):
    def __init__(self):
        super().__init__()
        self.sent: List[SentEmail] = []
        self.fail = False

    async def send_email(self, to_email, subject, html_content, text_content=None, attachments=None):
        if self.fail:
            raise MailDeliveryError("535 authentication failed")
        self.sent.append(SentEmail(to_email, subject, html_content, text_content, list(attachments or [])))


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging and inspecting data outside of requests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def mailer() -> FakeEmailService:
    return FakeEmailService()


# =============================================================================
# Data Fixtures
# =============================================================================

async def make_user(db: AsyncSession, email: str, verified: bool = True, **fields) -> User:
    user = User(
        email=email,
        hashed_password=get_password_hash(PASSWORD),
        name=fields.pop("name", "Test User"),
        email_verified=datetime.utcnow() if verified else None,
        **fields,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_client(db: AsyncSession, user: User, company_name: str = "Acme Corp", email: str = "billing@acme.com") -> Client:
    client = Client(user_id=user.id, company_name=company_name, contact_name="Wile E.", email=email)
    db.add(client)
    await db.commit()
    await db.refresh(client)
    return client


async def make_invoice(
    db: AsyncSession,
    client: Client,
    invoice_number: str,
    status: InvoiceStatus = InvoiceStatus.DRAFT,
    amount: Decimal = Decimal("100.00"),
    **fields,
) -> Invoice:
    invoice = Invoice(
        user_id=client.user_id,
        client_id=client.id,
        invoice_number=invoice_number,
        status=status,
        amount=amount,
        **fields,
    )
    db.add(invoice)
    await db.flush()
    db.add(InvoiceItem(
        invoice_id=invoice.id,
        position=0,
        description="Consulting",
        quantity=Decimal("1"),
        unit_price=amount,
        total=amount,
    ))
    await db.commit()
    await db.refresh(invoice)
    return invoice


@pytest.fixture
async def user(db: AsyncSession) -> User:
    return await make_user(db, "owner@acme.com", company_name="Road Runner Studio")


@pytest.fixture
async def other_user(db: AsyncSession) -> User:
    return await make_user(db, "someone-else@acme.com", name="Other User")


@pytest.fixture
async def acme(db: AsyncSession, user: User) -> Client:
    return await make_client(db, user)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture
async def client(session_factory, storage, mailer) -> AsyncGenerator[AsyncClient, None]:
    """
    Unauthenticated AsyncClient. Each request gets its own session.
    """
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_email_service] = lambda: mailer

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
async def authed_client(client: AsyncClient, user: User) -> AsyncClient:
    client.headers.update(auth_headers(user))
    return client


@pytest.fixture
def new_id() -> str:
    return str(uuid.uuid4())
