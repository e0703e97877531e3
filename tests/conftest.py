from datetime import datetime, timedelta
from typing import Generator

import pytest
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.database import build_engine, build_session_factory
from app.core.security import TokenIssuer, TokenSettings
from app.models.base import Base
from app.models.user import User

TEST_SECRET = "test-secret-key-with-enough-entropy-0123456789"


class FrozenClock:
    """Часы для тестов: время двигается только вручную."""

    def __init__(self, now: datetime):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 1, 1, 12, 0, 0))


@pytest.fixture
def token_settings() -> TokenSettings:
    return TokenSettings(
        secret_key=TEST_SECRET,
        access_token_expire_minutes=30,
        refresh_token_expire_minutes=60 * 24,
    )


@pytest.fixture
def issuer(token_settings: TokenSettings, clock: FrozenClock) -> TokenIssuer:
    return TokenIssuer(token_settings, clock=clock)


@pytest.fixture
def session_factory() -> Generator[sessionmaker, None, None]:
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def file_session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    engine = build_engine(f"sqlite:///{tmp_path / 'auth.db'}")
    Base.metadata.create_all(bind=engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def add_user(db: Session, user_id: int, username: str, hashed_password: str = "not-a-real-hash") -> User:
    user = User(id=user_id, username=username, hashed_password=hashed_password)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
