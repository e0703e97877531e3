from enum import Enum


class AuthFailureReason(str, Enum):
    MALFORMED_TOKEN = "malformed_token"
    TOKEN_NOT_EXPIRED = "token_not_expired"
    UNKNOWN_REFRESH_TOKEN = "unknown_refresh_token"
    TOKEN_ALREADY_ROTATED = "token_already_rotated"
    REFRESH_TOKEN_EXPIRED = "refresh_token_expired"
    ACCESS_TOKEN_EXPIRED = "access_token_expired"
    INVALID_CREDENTIALS = "invalid_credentials"
    AUTHENTICATION_FAILED = "authentication_failed"


class AuthFailure(Exception):
    """Отказ в аутентификации. Причина пишется в лог, клиенту уходит только общий ответ."""

    reason = AuthFailureReason.AUTHENTICATION_FAILED
    detail = "Invalid or expired token"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.reason.value)

    def with_detail(self, detail: str) -> "AuthFailure":
        self.detail = detail
        return self


class MalformedToken(AuthFailure):
    reason = AuthFailureReason.MALFORMED_TOKEN


class TokenNotExpired(AuthFailure):
    reason = AuthFailureReason.TOKEN_NOT_EXPIRED


class UnknownRefreshToken(AuthFailure):
    reason = AuthFailureReason.UNKNOWN_REFRESH_TOKEN


class TokenAlreadyRotated(AuthFailure):
    reason = AuthFailureReason.TOKEN_ALREADY_ROTATED


class RefreshTokenExpired(AuthFailure):
    reason = AuthFailureReason.REFRESH_TOKEN_EXPIRED


class AccessTokenExpired(AuthFailure):
    reason = AuthFailureReason.ACCESS_TOKEN_EXPIRED


class InvalidCredentials(AuthFailure):
    reason = AuthFailureReason.INVALID_CREDENTIALS
    detail = "Invalid credentials"


class StorageUnavailable(Exception):
    """Transient storage failure; callers may retry with backoff."""


class SigningConfigurationError(RuntimeError):
    """Invalid signing configuration. Raised at start-up, never per request."""
