import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("PAYNOW_INTEGRATION_ID", "1234")
os.environ.setdefault("PAYNOW_INTEGRATION_KEY", "test-integration-key")

from typing import AsyncGenerator, Dict, Optional, Tuple
from urllib.parse import parse_qsl, urlencode

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.auth.models import User
from app.auth.security import hash_password, token_for_user
from app.auth.services import DEFAULT_STUDENT_CLASS, DEFAULT_STUDENT_GRADE, ROLE_RECORDS
from app.core.config import settings
from app.core.enums import UserRole
from app.core.identifiers import generate_role_code
from app.db.session import Base, get_db
from app.integrations.paynow import PaynowGateway, compute_hash, get_payment_gateway
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"
PAYNOW_KEY = "test-integration-key"


class FakePaynow:
    """Answers initiate and poll requests the way Paynow does, signed with PAYNOW_KEY."""

    def __init__(self) -> None:
        # reference -> (status, paynow reference)
        self.poll_replies: Dict[str, Tuple[str, str]] = {}
        self.fail_initiate = False
        self.initiated = []

    def set_status(self, reference: str, status: str, paynow_reference: str = "") -> None:
        self.poll_replies[reference] = (status, paynow_reference)

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("initiatetransaction"):
            if self.fail_initiate:
                return httpx.Response(500, text="gateway down")
            fields = dict(parse_qsl(request.content.decode()))
            self.initiated.append(fields)
            reference = fields["reference"]
            reply = {
                "status": "Ok",
                "browserurl": f"https://paynow.example.com/pay/{reference}",
                "pollurl": f"https://paynow.example.com/poll/{reference}",
            }
        else:
            reference = request.url.path.rsplit("/", 1)[-1]
            status, paynow_reference = self.poll_replies.get(reference, ("Created", ""))
            reply = {"reference": reference, "paynowreference": paynow_reference, "status": status}
        reply["hash"] = compute_hash(reply, PAYNOW_KEY)
        return httpx.Response(200, text=urlencode(reply))


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; the same session backs every request."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session

    await engine.dispose()


@pytest.fixture()
def fake_paynow() -> FakePaynow:
    return FakePaynow()


@pytest.fixture()
def gateway(fake_paynow: FakePaynow) -> PaynowGateway:
    return PaynowGateway(
        integration_id="1234",
        integration_key=PAYNOW_KEY,
        return_url=settings.paynow_return_url,
        result_url=settings.paynow_result_url,
        initiate_url=settings.paynow_initiate_url,
        transport=httpx.MockTransport(fake_paynow.handler),
    )


@pytest.fixture()
async def client(db_session: AsyncSession, gateway: PaynowGateway) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token_for_user(user)}"}


@pytest.fixture()
def make_account(db_session: AsyncSession):
    """Create a user with its role record; returns (user, record, headers)."""

    async def _make(
        role: UserRole,
        username: str,
        first_name: str = "Test",
        last_name: Optional[str] = None,
        current_class: str = DEFAULT_STUDENT_CLASS,
        password: str = "secret123",
    ):
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=hash_password(password),
            role=role.value,
            first_name=first_name,
            last_name=last_name or username.capitalize(),
            is_active=True,
        )
        db_session.add(user)
        await db_session.flush()
        model, code_attr = ROLE_RECORDS[role]
        kwargs = {"user": user, code_attr: await generate_role_code(db_session, getattr(model, code_attr), role)}
        if role == UserRole.STUDENT:
            kwargs.update(current_grade=current_class[:-1] or DEFAULT_STUDENT_GRADE, current_class=current_class)
        record = model(**kwargs)
        db_session.add(record)
        await db_session.commit()
        return user, record, auth_headers(user)

    return _make


@pytest.fixture()
async def admin(make_account):
    return await make_account(UserRole.ADMIN, "admin")


@pytest.fixture()
async def receptionist(make_account):
    return await make_account(UserRole.RECEPTIONIST, "frontdesk")


@pytest.fixture()
def sign_paynow():
    """Add the hash field to a gateway message, as Paynow does for result notifications."""

    def _sign(fields: Dict[str, str]) -> Dict[str, str]:
        signed = dict(fields)
        signed["hash"] = compute_hash(signed, PAYNOW_KEY)
        return signed

    return _sign
