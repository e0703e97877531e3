import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from app.core.clock import Clock, utcnow
from app.core.config import Settings, settings as default_settings
from app.core.database import build_engine, build_session_factory
from app.core.handlers import register_error_handlers
from app.core.security import TokenIssuer
import app.models  # noqa: F401
from app.models.base import Base
from app.routers import auth as auth_router
from app.services.auth import AuthService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = app.state.engine
    Base.metadata.create_all(bind=engine)
    logger.info("Auth service started")
    try:
        yield
    finally:
        engine.dispose()


def create_app(settings: Optional[Settings] = None, clock: Clock = utcnow) -> FastAPI:
    """Собираем приложение. Ошибка конфигурации подписи валит старт, а не отдельные запросы."""
    settings = settings or default_settings
    logging.basicConfig(level=settings.log_level.upper())

    issuer = TokenIssuer(settings.token_settings(), clock=clock)
    engine = build_engine(settings.database_url)

    application = FastAPI(title="Auth Token API", lifespan=lifespan)
    application.state.engine = engine
    application.state.session_factory = build_session_factory(engine)
    application.state.token_issuer = issuer
    application.state.auth_service = AuthService(issuer, rotation_policy=settings.rotation_policy)
    register_error_handlers(application)
    application.include_router(auth_router.router)

    @application.get("/health", tags=["health"])
    def health() -> dict:
        return {"status": "ok"}

    return application


app = create_app()
