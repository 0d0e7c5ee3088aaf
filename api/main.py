from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import sys
import time

from app.api.v1.router import router as v1_router
from app.auth.sessions import AuthProvider, auth_session_registry
from app.config.settings import ConfigError, settings

# Configure structured logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

ERROR_PREVIEW_CHARS = 300


def _error_detail_preview(response) -> str | None:
    """Short, log-safe preview of a JSON error body (provider bodies can be large)."""
    raw_body = getattr(response, "body", None)
    if not isinstance(raw_body, (bytes, bytearray)) or not raw_body:
        return None
    preview = raw_body.decode("utf-8", errors="replace").strip().replace("\n", " ")
    if len(preview) > ERROR_PREVIEW_CHARS:
        return f"{preview[:ERROR_PREVIEW_CHARS]}..."
    return preview or None


def _provider_configuration() -> dict[str, bool]:
    configured = {
        AuthProvider.spotify: (settings.SPOTIFY_CLIENT_ID, settings.SPOTIFY_CLIENT_SECRET, settings.SPOTIFY_REDIRECT_URI),
        AuthProvider.youtube: (settings.YOUTUBE_CLIENT_ID, settings.YOUTUBE_CLIENT_SECRET, settings.YOUTUBE_REDIRECT_URI),
    }
    return {provider.value: all(value.strip() for value in values) for provider, values in configured.items()}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Refuse to start without provider credentials; drop all sessions on shutdown."""
    try:
        settings.require_provider_settings()
    except ConfigError:
        logger.critical("Provider configuration incomplete: %s", _provider_configuration())
        raise
    logger.info("Musync starting up (debug=%s)", settings.DEBUG)
    yield
    logger.info("Musync shutting down (%s live sessions dropped)", len(auth_session_registry))
    auth_session_registry.clear()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Link Spotify and YouTube Music accounts and compare their playlists",
    version="1.0.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def log_non_success_responses(request: Request, call_next):
    """Log 4xx/5xx responses with the session and error kind that produced them."""
    started_at = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            "Unhandled exception on %s %s after %.2fms",
            request.method,
            request.url.path,
            (time.perf_counter() - started_at) * 1000,
        )
        raise

    if response.status_code >= 400:
        log_parts = [
            f"{request.method} {request.url.path}",
            f"status={response.status_code}",
            f"elapsed_ms={(time.perf_counter() - started_at) * 1000:.2f}",
            f"session={'yes' if request.cookies.get(settings.SESSION_COOKIE_NAME) else 'no'}",
        ]
        detail = _error_detail_preview(response)
        if detail:
            log_parts.append(f"detail={detail}")
        logger.warning("HTTP response debug: %s", " | ".join(log_parts))

    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "Origin"],
)


@app.get("/")
async def root():
    """Root endpoint"""
    return {"message": "Welcome to Musync API"}


@app.get("/health")
async def health_check():
    """Health check with provider configuration and live session count"""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "providers": _provider_configuration(),
        "sessions": len(auth_session_registry),
    }


app.include_router(v1_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
