from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.security import PLACEHOLDER_SECRET, TokenSettings


class RotationPolicy(str, Enum):
    SINGLE = "single"
    REVOKE_ALL = "revoke_all"


class Settings(BaseSettings):
    """Базовые настройки приложения; переопределяются через переменные окружения."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_env: str = Field("development")
    log_level: str = Field("INFO")
    secret_key: str = Field(PLACEHOLDER_SECRET)
    jwt_algorithm: str = Field("HS256")
    access_token_expire_minutes: int = Field(30)
    refresh_token_expire_minutes: int = Field(60 * 24 * 7)
    refresh_token_bytes: int = Field(48)
    rotation_policy: RotationPolicy = Field(RotationPolicy.SINGLE)
    database_url: str = Field("sqlite:///./app.db")

    def token_settings(self) -> TokenSettings:
        return TokenSettings(
            secret_key=self.secret_key,
            algorithm=self.jwt_algorithm,
            access_token_expire_minutes=self.access_token_expire_minutes,
            refresh_token_expire_minutes=self.refresh_token_expire_minutes,
            refresh_token_bytes=self.refresh_token_bytes,
            forbid_placeholder_secret=self.app_env == "production",
        )


settings = Settings()
