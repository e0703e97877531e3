import hashlib
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, NamedTuple

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.clock import Clock, from_timestamp, utcnow
from app.core.errors import AccessTokenExpired, MalformedToken, SigningConfigurationError

PLACEHOLDER_SECRET = "CHANGE_ME"
SUPPORTED_ALGORITHMS = frozenset({"HS256", "HS384", "HS512"})
MIN_REFRESH_TOKEN_BYTES = 32
ACCESS_TOKEN_TYPE = "access"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Хешируем пароль через bcrypt (passlib)."""
    return pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    return pwd_context.verify(password, hashed_password)


def hash_refresh_token(refresh_token: str) -> str:
    return hashlib.sha256(refresh_token.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class TokenSettings:
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    refresh_token_expire_minutes: int = 60 * 24 * 7
    refresh_token_bytes: int = 48
    forbid_placeholder_secret: bool = False

    @property
    def access_lifetime(self) -> timedelta:
        return timedelta(minutes=self.access_token_expire_minutes)

    @property
    def refresh_lifetime(self) -> timedelta:
        return timedelta(minutes=self.refresh_token_expire_minutes)

    def validate(self) -> None:
        if not self.secret_key:
            raise SigningConfigurationError("SECRET_KEY must not be empty")
        if self.forbid_placeholder_secret and self.secret_key == PLACEHOLDER_SECRET:
            raise SigningConfigurationError("SECRET_KEY still has the placeholder value")
        if self.algorithm not in SUPPORTED_ALGORITHMS:
            raise SigningConfigurationError(f"Unsupported JWT algorithm: {self.algorithm}")
        if self.access_token_expire_minutes <= 0:
            raise SigningConfigurationError("Access token lifetime must be positive")
        if self.refresh_token_expire_minutes <= self.access_token_expire_minutes:
            raise SigningConfigurationError("Refresh token lifetime must exceed the access token lifetime")
        if self.refresh_token_bytes < MIN_REFRESH_TOKEN_BYTES:
            raise SigningConfigurationError(
                f"Refresh tokens need at least {MIN_REFRESH_TOKEN_BYTES} random bytes"
            )


@dataclass(frozen=True)
class AccessClaims:
    subject: int
    issued_at: datetime
    expires_at: datetime
    token_id: str


class TokenPair(NamedTuple):
    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime


class TokenIssuer:
    """Выпускает пары access/refresh. Состояния не держит, ключ и часы передаются явно."""

    def __init__(self, token_settings: TokenSettings, clock: Clock = utcnow):
        token_settings.validate()
        self.settings = token_settings
        self.clock = clock

    def now(self) -> datetime:
        return self.clock()

    def sign(self, claims: AccessClaims) -> str:
        """Timestamps are encoded with whole-second precision."""
        to_encode = {
            "sub": str(claims.subject),
            "iat": claims.issued_at,
            "exp": claims.expires_at,
            "jti": claims.token_id,
            "type": ACCESS_TOKEN_TYPE,
        }
        return jwt.encode(to_encode, self.settings.secret_key, algorithm=self.settings.algorithm)

    def issue_tokens(self, user_id: int) -> TokenPair:
        now = self.now().replace(microsecond=0)
        claims = AccessClaims(
            subject=user_id,
            issued_at=now,
            expires_at=now + self.settings.access_lifetime,
            token_id=uuid.uuid4().hex,
        )
        return TokenPair(
            access_token=self.sign(claims),
            refresh_token=secrets.token_urlsafe(self.settings.refresh_token_bytes),
            access_expires_at=claims.expires_at,
            refresh_expires_at=now + self.settings.refresh_lifetime,
        )

    def decode_unverified(self, token: str) -> AccessClaims:
        """Check the signature but not the expiry, so expired tokens can still be read."""
        try:
            payload = jwt.decode(
                token,
                self.settings.secret_key,
                algorithms=[self.settings.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise MalformedToken(str(exc)) from exc
        return _claims_from_payload(payload)

    def decode(self, token: str) -> AccessClaims:
        claims = self.decode_unverified(token)
        if self.now() >= claims.expires_at:
            raise AccessTokenExpired()
        return claims


def _claims_from_payload(payload: Dict[str, Any]) -> AccessClaims:
    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise MalformedToken("not an access token")
    try:
        subject = int(payload["sub"])
        issued_at = from_timestamp(int(payload["iat"]))
        expires_at = from_timestamp(int(payload["exp"]))
        token_id = str(payload["jti"])
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedToken(f"bad claim set: {exc}") from exc
    return AccessClaims(subject=subject, issued_at=issued_at, expires_at=expires_at, token_id=token_id)


bearer_scheme = HTTPBearer(auto_error=True)


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_current_claims(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> AccessClaims:
    return issuer.decode(credentials.credentials)
