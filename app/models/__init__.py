from app.models.refresh_token import RefreshTokenRecord, RefreshTokenStatus
from app.models.user import User

__all__ = ["RefreshTokenRecord", "RefreshTokenStatus", "User"]
