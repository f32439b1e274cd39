"""
Auth feature: API routes.
"""

from fastapi import APIRouter, Depends

from studyplanner.core.dependencies import get_auth_service
from studyplanner.core.exceptions import AppBaseError, app_error_to_http, is_refresh_token_error
from studyplanner.features.auth.schemas import (
    MessageResponse,
    OAuthResponse,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
    user_response,
)
from studyplanner.features.auth.service import AuthService

router = APIRouter()


def _session_response(auth: AuthService) -> SessionResponse:
    session = auth.session
    return SessionResponse(
        authenticated=auth.user is not None,
        user=user_response(auth.user),
        expires_at=getattr(session, "expires_at", None) if session else None,
    )


@router.post("/sign-in", response_model=SessionResponse)
async def sign_in(data: SignInRequest, auth: AuthService = Depends(get_auth_service)):
    """Sign in with email and password."""
    try:
        await auth.sign_in(data.email, data.password)
    except AppBaseError as e:
        raise app_error_to_http(e)
    return _session_response(auth)


@router.post("/sign-up", response_model=SessionResponse)
async def sign_up(data: SignUpRequest, auth: AuthService = Depends(get_auth_service)):
    """Create an account. Without a session the user must confirm their email first."""
    try:
        await auth.sign_up(data.email, data.password)
    except AppBaseError as e:
        raise app_error_to_http(e)
    return _session_response(auth)


@router.get("/google", response_model=OAuthResponse)
async def sign_in_with_google(auth: AuthService = Depends(get_auth_service)):
    try:
        url = await auth.sign_in_with_google()
    except AppBaseError as e:
        raise app_error_to_http(e)
    return OAuthResponse(url=url)


@router.post("/sign-out", response_model=MessageResponse)
async def sign_out(auth: AuthService = Depends(get_auth_service)):
    await auth.sign_out()
    return MessageResponse(message="Signed out")


@router.get("/session", response_model=SessionResponse)
async def get_session(auth: AuthService = Depends(get_auth_service)):
    """Who is signed in, after refreshing an expiring token."""
    if auth.user is not None:
        session, error = await auth.sessions.get_valid_session()
        if session is not None:
            auth.session = session
        elif error is None or is_refresh_token_error(error):
            await auth.sign_out()
    return _session_response(auth)
