from datetime import datetime

from pydantic import BaseModel, ConfigDict, constr


class UserLogin(BaseModel):
    username: constr(min_length=1, max_length=150)  # type: ignore[valid-type]
    password: constr(min_length=1)  # type: ignore[valid-type]


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    created_at: datetime


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: datetime


class AuthResponse(Token):
    user: UserOut


class RefreshRequest(BaseModel):
    expired_token: constr(min_length=1)  # type: ignore[valid-type]
    refresh_token: constr(min_length=1)  # type: ignore[valid-type]


class LogoutRequest(BaseModel):
    refresh_token: constr(min_length=1)  # type: ignore[valid-type]


class LogoutAllResponse(BaseModel):
    revoked: int


class SessionOut(BaseModel):
    user_id: int
    expires_at: datetime
    active_refresh_tokens: int
