"""Login, logout and session checks"""
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status

from taskflow.config import settings
from taskflow.dependencies import get_authenticator, get_current_identity, get_session_token
from taskflow.errors import AuthError
from taskflow.schemas import AuthCheckResponse, LoginRequest, LoginResponse, UserResponse
from taskflow.services import Authenticator, ClientMeta, Identity

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
def login(
    credentials: LoginRequest,
    request: Request,
    response: Response,
    authenticator: Authenticator = Depends(get_authenticator),
):
    """Open a session and hand back its token, also as an HttpOnly cookie."""
    client_meta = ClientMeta(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("User-Agent"),
    )
    result = authenticator.login(credentials.identifier, credentials.password, client_meta)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=result.session_token,
        max_age=int(authenticator.session_ttl.total_seconds()),
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )
    return LoginResponse(
        user=UserResponse.model_validate(result.user),
        session_token=result.session_token,
        expires_at=result.expires_at,
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    response: Response,
    token: Optional[str] = Depends(get_session_token),
    authenticator: Authenticator = Depends(get_authenticator),
):
    authenticator.logout(token)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)


@router.get("/profile", response_model=UserResponse)
def profile(
    identity: Identity = Depends(get_current_identity),
    authenticator: Authenticator = Depends(get_authenticator),
):
    return authenticator.profile(identity)


@router.get("/check", response_model=AuthCheckResponse)
def check(
    token: Optional[str] = Depends(get_session_token),
    authenticator: Authenticator = Depends(get_authenticator),
):
    """Report whether the caller holds a live session; never fails with 401."""
    try:
        identity = authenticator.resolve(token)
    except AuthError:
        return AuthCheckResponse(authenticated=False)
    user = authenticator.profile(identity)
    return AuthCheckResponse(
        authenticated=True,
        user_id=user.id,
        username=user.username,
        role=user.role.value,
    )
