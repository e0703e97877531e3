from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import AuthFailure
from app.core.security import AccessClaims, get_current_claims
from app.schemas.auth import (
    AuthResponse,
    LogoutAllResponse,
    LogoutRequest,
    RefreshRequest,
    SessionOut,
    Token,
    UserLogin,
    UserOut,
)
from app.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])
TOKEN_TYPE = "bearer"
REFRESH_FAILURE_DETAIL = "Invalid refresh token"


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


@router.post("/login", response_model=AuthResponse)
def login(
    credentials: UserLogin,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    user, pair = service.authenticate(db, credentials)
    return AuthResponse(
        user=UserOut.model_validate(user),
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_at=pair.access_expires_at,
        token_type=TOKEN_TYPE,
    )


@router.post("/refresh", response_model=Token)
def refresh_tokens(
    request: RefreshRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> Token:
    try:
        pair = service.rotate(db, request.expired_token, request.refresh_token)
    except AuthFailure as exc:
        raise exc.with_detail(REFRESH_FAILURE_DETAIL)
    return Token(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_at=pair.access_expires_at,
        token_type=TOKEN_TYPE,
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    request: LogoutRequest,
    claims: AccessClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> Response:
    service.logout(db, claims.subject, request.refresh_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/logout-all", response_model=LogoutAllResponse)
def logout_all(
    claims: AccessClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> LogoutAllResponse:
    return LogoutAllResponse(revoked=service.logout_all(db, claims.subject))


@router.get("/session", response_model=SessionOut)
def current_session(
    claims: AccessClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> SessionOut:
    return SessionOut(
        user_id=claims.subject,
        expires_at=claims.expires_at,
        active_refresh_tokens=len(service.active_sessions(db, claims.subject)),
    )
