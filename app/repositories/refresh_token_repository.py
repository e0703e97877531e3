import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.core.errors import StorageUnavailable, TokenAlreadyRotated
from app.core.security import hash_refresh_token
from app.models.refresh_token import RefreshTokenRecord, RefreshTokenStatus

logger = logging.getLogger(__name__)


@contextmanager
def _storage(db: Session) -> Iterator[None]:
    try:
        yield
    except OperationalError as exc:
        db.rollback()
        logger.warning("Refresh token storage unavailable: %s", exc)
        raise StorageUnavailable(str(exc)) from exc


class RefreshTokenRepository:
    def create(
        self, db: Session, user_id: int, access_token: str, refresh_token: str, expires_at: datetime
    ) -> RefreshTokenRecord:
        with _storage(db):
            record = self._build(user_id, access_token, refresh_token, expires_at)
            db.add(record)
            db.commit()
            db.refresh(record)
            return record

    def find(self, db: Session, user_id: int, refresh_token: str) -> Optional[RefreshTokenRecord]:
        """Ищем запись по владельцу и токену в любом статусе; статус проверяет вызывающий код."""
        with _storage(db):
            return (
                db.query(RefreshTokenRecord)
                .filter(
                    RefreshTokenRecord.user_id == user_id,
                    RefreshTokenRecord.token_hash == hash_refresh_token(refresh_token),
                )
                .first()
            )

    def deactivate(self, db: Session, record_id: int) -> bool:
        with _storage(db):
            changed = self._deactivate(db, record_id)
            db.commit()
            return changed == 1

    def rotate(
        self,
        db: Session,
        old_record_id: int,
        user_id: int,
        access_token: str,
        refresh_token: str,
        expires_at: datetime,
        revoke_siblings: bool = False,
    ) -> RefreshTokenRecord:
        """Deactivate the old record and insert its replacement in one transaction.

        The conditional UPDATE acts as a compare-and-swap: of several concurrent
        rotations of the same record only the first one to commit changes a row,
        the rest get ``TokenAlreadyRotated`` and write nothing.
        """
        with _storage(db):
            if self._deactivate(db, old_record_id) != 1:
                db.rollback()
                raise TokenAlreadyRotated(f"refresh record {old_record_id} is no longer active")
            if revoke_siblings:
                self._deactivate_all(db, user_id)
            record = self._build(user_id, access_token, refresh_token, expires_at)
            db.add(record)
            db.commit()
            db.refresh(record)
            return record

    def revoke(self, db: Session, user_id: int, refresh_token: str) -> bool:
        with _storage(db):
            changed = (
                db.query(RefreshTokenRecord)
                .filter(
                    RefreshTokenRecord.user_id == user_id,
                    RefreshTokenRecord.token_hash == hash_refresh_token(refresh_token),
                    RefreshTokenRecord.status == RefreshTokenStatus.ACTIVE,
                )
                .update({RefreshTokenRecord.status: RefreshTokenStatus.INACTIVE}, synchronize_session=False)
            )
            db.commit()
            return changed == 1

    def revoke_all(self, db: Session, user_id: int) -> int:
        with _storage(db):
            changed = self._deactivate_all(db, user_id)
            db.commit()
            return changed

    def list_active(self, db: Session, user_id: int, now: datetime) -> List[RefreshTokenRecord]:
        with _storage(db):
            return (
                db.query(RefreshTokenRecord)
                .filter(
                    RefreshTokenRecord.user_id == user_id,
                    RefreshTokenRecord.status == RefreshTokenStatus.ACTIVE,
                    RefreshTokenRecord.expires_at > now,
                )
                .order_by(RefreshTokenRecord.created_at, RefreshTokenRecord.id)
                .all()
            )

    @staticmethod
    def _build(user_id: int, access_token: str, refresh_token: str, expires_at: datetime) -> RefreshTokenRecord:
        return RefreshTokenRecord(
            user_id=user_id,
            access_token=access_token,
            token_hash=hash_refresh_token(refresh_token),
            expires_at=expires_at,
            status=RefreshTokenStatus.ACTIVE,
        )

    @staticmethod
    def _deactivate(db: Session, record_id: int) -> int:
        return (
            db.query(RefreshTokenRecord)
            .filter(
                RefreshTokenRecord.id == record_id,
                RefreshTokenRecord.status == RefreshTokenStatus.ACTIVE,
            )
            .update({RefreshTokenRecord.status: RefreshTokenStatus.INACTIVE}, synchronize_session=False)
        )

    @staticmethod
    def _deactivate_all(db: Session, user_id: int) -> int:
        return (
            db.query(RefreshTokenRecord)
            .filter(
                RefreshTokenRecord.user_id == user_id,
                RefreshTokenRecord.status == RefreshTokenStatus.ACTIVE,
            )
            .update({RefreshTokenRecord.status: RefreshTokenStatus.INACTIVE}, synchronize_session=False)
        )
