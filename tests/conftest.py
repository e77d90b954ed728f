import asyncio
import inspect
import os
from contextlib import asynccontextmanager

os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only-do-not-use-in-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("MAIL_HOST", "")

import logging  # noqa: E402

import pytest  # noqa: E402
import structlog  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool, StaticPool  # noqa: E402
from structlog.testing import LogCapture  # noqa: E402

import app.models  # noqa: E402,F401
from app.api.deps import get_mailer  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.core.db import Base, get_db  # noqa: E402
from app.core.logging import configure_logging, redact_sensitive  # noqa: E402
from app.core.security import hash_password  # noqa: E402
from app.main import app as fastapi_app  # noqa: E402
from app.models.user import User  # noqa: E402
from app.repositories.mfa import MfaRepository  # noqa: E402
from app.repositories.refresh_token import RefreshTokenRepository  # noqa: E402
from app.repositories.user import UserRepository  # noqa: E402
from app.services.auth import AuthService  # noqa: E402
from app.services.mfa import MfaService  # noqa: E402
from app.services.refresh_token import RefreshTokenService  # noqa: E402
from app.services.token_issuer import TokenConfig, TokenIssuer  # noqa: E402
from app.services.totp import TotpService  # noqa: E402

TEST_SECRET = "unit-test-signing-secret"
TEST_PASSWORD = "TestPassword123!"


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**call_kwargs))
        return True
    return None


class FakeMailer:
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, str | None]] = []
        self.fail = fail

    async def send_password_reset(self, user: User) -> None:
        from app.core.errors import InternalError

        if self.fail:
            raise InternalError("Failed to send password reset email")
        self.sent.append((user.email, user.token))


@pytest.fixture
def open_db():
    """
    Returns an async context manager yielding a session on a fresh in-memory
    database. Engines are loop-bound, so each coroutine test opens its own.
    """
    @asynccontextmanager
    async def _open():
        engine = create_async_engine(
            "sqlite+aiosqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        session_factory = async_sessionmaker(engine, expire_on_commit=False)
        async with session_factory() as session:
            yield session
        await engine.dispose()

    return _open


@pytest.fixture
def issuer():
    return TokenIssuer(TokenConfig(secret=TEST_SECRET))


@pytest.fixture
def totp():
    return TotpService(issuer="AuthHubTest")


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def build_auth(issuer, totp, mailer):
    def _build(db):
        return AuthService(
            users=UserRepository(db),
            issuer=issuer,
            refresh_tokens=RefreshTokenService(RefreshTokenRepository(db)),
            mfa=MfaService(MfaRepository(db), totp),
            mailer=mailer,
        )

    return _build


async def create_user(db, email: str = "user@example.com", password: str = TEST_PASSWORD, name: str = "Test User") -> User:
    return await UserRepository(db).create(
        User(email=email, name=name, hashed_password=hash_password(password))
    )


@pytest.fixture
def make_user():
    return create_user


@pytest.fixture
def client(tmp_path, mailer):
    url = f"sqlite+aiosqlite:///{tmp_path / 'api.db'}"

    async def _create_schema():
        engine = create_async_engine(url)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()

    asyncio.run(_create_schema())

    # NullPool: the TestClient runs the app on its own event loop
    engine = create_async_engine(url, poolclass=NullPool)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    async def _get_db():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _get_db
    fastapi_app.dependency_overrides[get_mailer] = lambda: mailer
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def captured_logs():
    """Routes log events through the redaction step into a LogCapture."""
    capture = LogCapture()
    structlog.configure(
        processors=[structlog.contextvars.merge_contextvars, redact_sensitive, capture],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        cache_logger_on_first_use=False,
    )
    yield capture
    structlog.contextvars.clear_contextvars()
    configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)
