"""Auth routes"""

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse

from app.api.v1.routes.common import login_path
from app.auth.dependencies import (
    get_or_create_user_sessions,
    get_user_sessions,
    set_session_cookie,
)
from app.auth.oauth import get_authenticator
from app.auth.sessions import AuthProvider, UserSessions, auth_session_registry
from app.config.settings import settings
from app.schemas.auth import AuthStatusOut, ProviderAuthStatus
from app.services.music_providers import CsrfMismatchError, TokenExchangeError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/login/{provider}")
async def login_provider(
    provider: AuthProvider,
    sessions: UserSessions = Depends(get_or_create_user_sessions),
) -> Response:
    """Redirect the user to the provider's OAuth consent screen."""
    authenticator = get_authenticator(provider, sessions.get(provider))
    response = RedirectResponse(url=authenticator.generate_auth_url(), status_code=status.HTTP_302_FOUND)
    set_session_cookie(response, sessions)
    return response


@router.get("/callback/{provider}")
async def callback_provider(
    provider: AuthProvider,
    request: Request,
    sessions: UserSessions = Depends(get_user_sessions),
) -> Response:
    """Validate the callback state, exchange the code and redirect to the frontend."""
    authenticator = get_authenticator(provider, sessions.get(provider))

    try:
        authenticator.require_valid_state(request.query_params.get("state"))
    except CsrfMismatchError as exc:
        logger.warning("%s callback rejected: state mismatch", provider.value)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="State mismatch") from exc

    code = request.query_params.get("code")
    if not code:
        provider_error = request.query_params.get("error")
        if provider_error:
            logger.warning("%s callback returned provider error: %s", provider.value, provider_error)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Authorization error: {provider_error}",
            )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing authorization code")

    try:
        await authenticator.exchange_code(code)
    except TokenExchangeError as exc:
        logger.error("%s code exchange failed: %s", provider.value, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to exchange token: {exc}",
        ) from exc

    redirect_target = f"{settings.FRONTEND_URL.rstrip('/')}/?{urlencode({'linked': provider.value})}"
    return RedirectResponse(url=redirect_target, status_code=status.HTTP_302_FOUND)


@router.get("/status", response_model=AuthStatusOut)
async def auth_status(sessions: UserSessions = Depends(get_user_sessions)):
    """Report which providers are linked for the current session."""
    entries = {
        provider.value: ProviderAuthStatus(
            provider=provider.value,
            authorized=sessions.get(provider).is_authorized,
            login_url=login_path(provider),
        )
        for provider in AuthProvider
    }
    return AuthStatusOut(**entries)


@router.post("/logout/{provider}")
async def logout_provider(
    provider: AuthProvider,
    sessions: UserSessions = Depends(get_user_sessions),
):
    """Forget the provider's credentials; drop the whole session once nothing is linked."""
    sessions.get(provider).clear()
    response = JSONResponse({"status": "logged_out", "provider": provider.value})
    if not sessions.has_linked_provider:
        auth_session_registry.discard(sessions.session_id)
        response.delete_cookie(
            settings.SESSION_COOKIE_NAME,
            httponly=True,
            secure=settings.SESSION_COOKIE_SECURE,
            samesite=settings.SESSION_COOKIE_SAMESITE,
        )
    return response
