from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.database import build_engine, build_session_factory
from app.core.errors import StorageUnavailable, TokenAlreadyRotated
from app.models.refresh_token import RefreshTokenRecord, RefreshTokenStatus
from app.repositories.refresh_token_repository import RefreshTokenRepository

from conftest import add_user

NOW = datetime(2026, 1, 1, 12, 0, 0)
LATER = NOW + timedelta(days=1)


@pytest.fixture
def repo() -> RefreshTokenRepository:
    return RefreshTokenRepository()


def count_records(db: Session) -> int:
    return db.query(RefreshTokenRecord).count()


def test_create_stores_active_record_without_plain_token(db, repo):
    add_user(db, 1, "alice")

    record = repo.create(db, user_id=1, access_token="access-1", refresh_token="refresh-1", expires_at=LATER)

    assert record.id is not None
    assert record.status is RefreshTokenStatus.ACTIVE
    assert record.token_hash != "refresh-1"
    assert record.access_token == "access-1"
    assert repo.find(db, 1, "refresh-1").id == record.id


def test_find_is_scoped_to_owner(db, repo):
    add_user(db, 1, "alice")
    add_user(db, 2, "bob")
    repo.create(db, user_id=1, access_token="a", refresh_token="alice-refresh", expires_at=LATER)

    assert repo.find(db, 2, "alice-refresh") is None
    assert repo.find(db, 1, "unknown") is None


def test_rotate_deactivates_old_and_inserts_new(db, repo):
    add_user(db, 1, "alice")
    old = repo.create(db, user_id=1, access_token="a1", refresh_token="r1", expires_at=LATER)

    new = repo.rotate(db, old.id, user_id=1, access_token="a2", refresh_token="r2", expires_at=LATER)

    assert repo.find(db, 1, "r1").status is RefreshTokenStatus.INACTIVE
    assert new.status is RefreshTokenStatus.ACTIVE
    assert new.id != old.id
    assert count_records(db) == 2


def test_rotating_inactive_record_fails_and_writes_nothing(db, repo):
    add_user(db, 1, "alice")
    old = repo.create(db, user_id=1, access_token="a1", refresh_token="r1", expires_at=LATER)
    repo.rotate(db, old.id, user_id=1, access_token="a2", refresh_token="r2", expires_at=LATER)

    with pytest.raises(TokenAlreadyRotated):
        repo.rotate(db, old.id, user_id=1, access_token="a3", refresh_token="r3", expires_at=LATER)

    assert count_records(db) == 2
    assert repo.find(db, 1, "r3") is None


def test_stale_read_loses_the_race(file_session_factory, repo):
    with file_session_factory() as setup:
        add_user(setup, 1, "alice")
        repo.create(setup, user_id=1, access_token="a1", refresh_token="r1", expires_at=LATER)

    first = file_session_factory()
    second = file_session_factory()
    try:
        seen_by_first = repo.find(first, 1, "r1")
        seen_by_second = repo.find(second, 1, "r1")
        assert seen_by_first.is_active and seen_by_second.is_active

        repo.rotate(first, seen_by_first.id, user_id=1, access_token="a2", refresh_token="r2", expires_at=LATER)
        with pytest.raises(TokenAlreadyRotated):
            repo.rotate(
                second, seen_by_second.id, user_id=1, access_token="a3", refresh_token="r3", expires_at=LATER
            )
    finally:
        first.close()
        second.close()

    with file_session_factory() as check:
        assert len(repo.list_active(check, 1, NOW)) == 1
        assert repo.find(check, 1, "r2").is_active
        assert repo.find(check, 1, "r3") is None


def test_rotate_with_revoke_siblings_only_touches_owner(db, repo):
    add_user(db, 1, "alice")
    add_user(db, 2, "bob")
    phone = repo.create(db, user_id=1, access_token="a", refresh_token="phone", expires_at=LATER)
    repo.create(db, user_id=1, access_token="a", refresh_token="laptop", expires_at=LATER)
    repo.create(db, user_id=2, access_token="b", refresh_token="bob-refresh", expires_at=LATER)

    new = repo.rotate(
        db, phone.id, user_id=1, access_token="a2", refresh_token="phone-2", expires_at=LATER, revoke_siblings=True
    )

    assert [r.id for r in repo.list_active(db, 1, NOW)] == [new.id]
    assert repo.find(db, 1, "laptop").status is RefreshTokenStatus.INACTIVE
    assert repo.find(db, 2, "bob-refresh").is_active


def test_deactivate_is_compare_and_swap(db, repo):
    add_user(db, 1, "alice")
    record = repo.create(db, user_id=1, access_token="a", refresh_token="r", expires_at=LATER)

    assert repo.deactivate(db, record.id) is True
    assert repo.deactivate(db, record.id) is False


def test_revoke_and_revoke_all(db, repo):
    add_user(db, 1, "alice")
    for token in ("r1", "r2", "r3"):
        repo.create(db, user_id=1, access_token="a", refresh_token=token, expires_at=LATER)

    assert repo.revoke(db, 1, "r1") is True
    assert repo.revoke(db, 1, "r1") is False
    assert repo.revoke_all(db, 1) == 2
    assert repo.list_active(db, 1, NOW) == []


def test_list_active_skips_expired_records(db, repo):
    add_user(db, 1, "alice")
    repo.create(db, user_id=1, access_token="a", refresh_token="old", expires_at=NOW - timedelta(seconds=1))
    fresh = repo.create(db, user_id=1, access_token="a", refresh_token="fresh", expires_at=LATER)

    assert [r.id for r in repo.list_active(db, 1, NOW)] == [fresh.id]


def test_storage_errors_become_storage_unavailable(repo):
    engine = build_engine("sqlite://")
    db = build_session_factory(engine)()
    try:
        with pytest.raises(StorageUnavailable):
            repo.find(db, 1, "r1")
        with pytest.raises(StorageUnavailable):
            repo.create(db, user_id=1, access_token="a", refresh_token="r", expires_at=LATER)
    finally:
        db.close()
        engine.dispose()


def test_token_hash_is_unique_across_users(db, repo):
    add_user(db, 1, "alice")
    add_user(db, 2, "bob")
    repo.create(db, user_id=1, access_token="a", refresh_token="shared", expires_at=LATER)

    with pytest.raises(IntegrityError):
        repo.create(db, user_id=2, access_token="b", refresh_token="shared", expires_at=LATER)
    db.rollback()
    assert count_records(db) == 1
