import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.core.errors import AuthFailure, StorageUnavailable

logger = logging.getLogger(__name__)

STORAGE_RETRY_AFTER_SECONDS = 1


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthFailure)
    async def auth_failure(request: Request, exc: AuthFailure) -> JSONResponse:
        # Клиенту отдаём общий ответ, конкретная причина остаётся в логе
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.reason.value)
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": exc.detail},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(StorageUnavailable)
    async def storage_unavailable(request: Request, exc: StorageUnavailable) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Service temporarily unavailable"},
            headers={"Retry-After": str(STORAGE_RETRY_AFTER_SECONDS)},
        )
