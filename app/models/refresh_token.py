from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, Enum as SqlEnum, ForeignKey, Integer, String

from app.core.clock import utcnow
from app.models.base import Base


class RefreshTokenStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class RefreshTokenRecord(Base):
    """Запись о выданном refresh-токене. Меняется только статус: active -> inactive."""

    __tablename__ = "refresh_tokens"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    access_token: str = Column(String, nullable=False)
    token_hash: str = Column(String(64), nullable=False, unique=True)
    expires_at: datetime = Column(DateTime, nullable=False)
    created_at: datetime = Column(DateTime, default=utcnow, nullable=False)
    status: RefreshTokenStatus = Column(
        SqlEnum(
            RefreshTokenStatus,
            name="refresh_token_statuses",
            native_enum=False,
            values_callable=lambda statuses: [status.value for status in statuses],
        ),
        default=RefreshTokenStatus.ACTIVE,
        nullable=False,
    )

    @property
    def is_active(self) -> bool:
        return self.status is RefreshTokenStatus.ACTIVE
