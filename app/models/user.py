from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from app.core.clock import utcnow
from app.models.base import Base


class User(Base):
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    username: str = Column(String, unique=True, nullable=False, index=True)
    hashed_password: str = Column(String, nullable=False)
    created_at: datetime = Column(DateTime, default=utcnow, nullable=False)
