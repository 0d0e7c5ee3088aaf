"""Shared helpers for provider-backed routes"""
import logging

from fastapi import HTTPException, status

from app.auth.sessions import AuthProvider
from app.services.music_providers import (
    MergeValidationError,
    ProviderAPIError,
    ProviderError,
    ProviderErrorKind,
)
from app.services.sync import SyncCoordinator

logger = logging.getLogger(__name__)

coordinator = SyncCoordinator()


def login_path(provider: AuthProvider | str) -> str:
    value = provider.value if isinstance(provider, AuthProvider) else provider
    return f"/api/v1/auth/login/{value}"


def to_http_exception(exc: ProviderError, provider: AuthProvider | str | None) -> HTTPException:
    """Translate a provider failure into the response the caller acts on."""
    if exc.requires_reauth:
        detail = {"message": str(exc), "kind": exc.kind.value}
        if provider is not None:
            detail["login_url"] = login_path(provider)
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)
    if isinstance(exc, MergeValidationError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(exc), "kind": exc.kind.value, "field": exc.field},
        )
    if isinstance(exc, ProviderAPIError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "message": str(exc),
                "kind": exc.kind.value,
                "status_code": exc.status_code,
                "body": exc.body,
            },
        )
    if exc.kind is ProviderErrorKind.transport:
        return HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail={"message": str(exc), "kind": exc.kind.value},
        )
    logger.error("Unexpected %s failure for %s: %s", exc.kind.value, provider, exc)
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={"message": str(exc), "kind": exc.kind.value},
    )
