"""FastAPI dependencies resolving the caller's auth sessions."""

from fastapi import Request

from app.auth.sessions import UserSessions, auth_session_registry
from app.config.settings import settings


def get_user_sessions(request: Request) -> UserSessions:
    """Return the sessions bound to the request cookie, or an empty throwaway set."""
    session_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
    return auth_session_registry.get(session_id) or auth_session_registry.detached()


def get_or_create_user_sessions(request: Request) -> UserSessions:
    """Return the cookie's sessions, registering a new set when the cookie is unknown."""
    session_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
    return auth_session_registry.get_or_create(session_id)


def set_session_cookie(response, sessions: UserSessions) -> None:
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        sessions.session_id,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite=settings.SESSION_COOKIE_SAMESITE,
    )
