import logging
from typing import List, Tuple

from sqlalchemy.orm import Session

from app.core.config import RotationPolicy
from app.core.errors import (
    InvalidCredentials,
    RefreshTokenExpired,
    TokenAlreadyRotated,
    TokenNotExpired,
    UnknownRefreshToken,
)
from app.core.security import TokenIssuer, TokenPair, pwd_context, verify_password
from app.models.refresh_token import RefreshTokenRecord
from app.models.user import User
from app.repositories.refresh_token_repository import RefreshTokenRepository
from app.repositories.user_repository import UserRepository
from app.schemas.auth import UserLogin

logger = logging.getLogger(__name__)

# Хеш для несуществующего пользователя, чтобы время ответа не выдавало логин
FAKE_HASHED_PASSWORD = pwd_context.hash("this-user-does-not-exist")


class AuthService:
    def __init__(
        self,
        issuer: TokenIssuer,
        rotation_policy: RotationPolicy = RotationPolicy.SINGLE,
        user_repo: UserRepository | None = None,
        refresh_repo: RefreshTokenRepository | None = None,
    ):
        self.issuer = issuer
        self.rotation_policy = rotation_policy
        self.user_repo = user_repo or UserRepository()
        self.refresh_repo = refresh_repo or RefreshTokenRepository()

    def login_and_issue(self, db: Session, user_id: int) -> TokenPair:
        """Выпускаем пару токенов для уже проверенного пользователя и сохраняем refresh-запись."""
        pair = self.issuer.issue_tokens(user_id)
        self.refresh_repo.create(
            db,
            user_id=user_id,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_at=pair.refresh_expires_at,
        )
        logger.info("Issued tokens for user %s", user_id)
        return pair

    def authenticate(self, db: Session, credentials: UserLogin) -> Tuple[User, TokenPair]:
        user = self.user_repo.get_by_username(db, credentials.username)
        hashed_password = user.hashed_password if user else FAKE_HASHED_PASSWORD
        password_ok = verify_password(credentials.password, hashed_password)
        if not user or not password_ok:
            raise InvalidCredentials()
        return user, self.login_and_issue(db, user.id)

    def rotate(self, db: Session, expired_access_token: str, refresh_token: str) -> TokenPair:
        claims = self.issuer.decode_unverified(expired_access_token)
        user_id = claims.subject

        now = self.issuer.now()
        if claims.expires_at > now:
            raise TokenNotExpired()

        record = self.refresh_repo.find(db, user_id, refresh_token)
        if record is None:
            raise UnknownRefreshToken()
        if not record.is_active:
            logger.warning("Rotated-out refresh token %s presented again for user %s", record.id, user_id)
            raise TokenAlreadyRotated()
        if now >= record.expires_at:
            raise RefreshTokenExpired()

        pair = self.issuer.issue_tokens(user_id)
        try:
            self.refresh_repo.rotate(
                db,
                old_record_id=record.id,
                user_id=user_id,
                access_token=pair.access_token,
                refresh_token=pair.refresh_token,
                expires_at=pair.refresh_expires_at,
                revoke_siblings=self.rotation_policy is RotationPolicy.REVOKE_ALL,
            )
        except TokenAlreadyRotated:
            logger.warning("Concurrent rotation of refresh token %s for user %s lost", record.id, user_id)
            raise
        logger.info("Rotated refresh token %s for user %s", record.id, user_id)
        return pair

    def logout(self, db: Session, user_id: int, refresh_token: str) -> bool:
        return self.refresh_repo.revoke(db, user_id, refresh_token)

    def logout_all(self, db: Session, user_id: int) -> int:
        revoked = self.refresh_repo.revoke_all(db, user_id)
        logger.info("Revoked %s refresh tokens for user %s", revoked, user_id)
        return revoked

    def active_sessions(self, db: Session, user_id: int) -> List[RefreshTokenRecord]:
        return self.refresh_repo.list_active(db, user_id, self.issuer.now())
