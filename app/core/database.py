from typing import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

SQLITE_BUSY_TIMEOUT_SECONDS = 30
_IN_MEMORY_URLS = {"sqlite://", "sqlite:///:memory:"}


def _sqlite_connect_args(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {}
    # Конкурирующие ротации на SQLite ждут снятия блокировки, а не падают сразу.
    return {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SECONDS}


def build_engine(url: str, **kwargs) -> Engine:
    if url in _IN_MEMORY_URLS:
        # in-memory база живёт в одном соединении, иначе потоки запросов её не видят
        kwargs.setdefault("poolclass", StaticPool)
    return create_engine(url, future=True, echo=False, connect_args=_sqlite_connect_args(url), **kwargs)


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind, future=True)


def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
