"""In-memory, session-keyed OAuth state for each linked provider."""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from app.config.settings import settings
from app.services.music_providers.base import Credentials

logger = logging.getLogger(__name__)


class AuthProvider(str, Enum):
    spotify = "spotify"
    youtube = "youtube"


@dataclass
class AuthSession:
    provider: AuthProvider
    csrf_state: str | None = None
    credentials: Credentials | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def is_authorized(self) -> bool:
        return self.credentials is not None and self.credentials.is_authenticated

    def clear(self) -> None:
        self.csrf_state = None
        self.credentials = None


@dataclass
class UserSessions:
    session_id: str
    providers: dict[AuthProvider, AuthSession]
    last_seen: float = 0.0

    def get(self, provider: AuthProvider) -> AuthSession:
        return self.providers[provider]

    @property
    def has_linked_provider(self) -> bool:
        return any(session.is_authorized for session in self.providers.values())


class AuthSessionRegistry:
    """Maps session ids to one AuthSession per provider.

    Nothing here is persisted; a restart drops every linked account.
    Sessions with no linked provider expire after `pending_ttl_seconds`
    of inactivity, and the registry never holds more than `max_sessions`.
    """

    def __init__(
        self,
        *,
        max_sessions: int,
        pending_ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: dict[str, UserSessions] = {}
        self.max_sessions = max_sessions
        self.pending_ttl_seconds = pending_ttl_seconds
        self._clock = clock

    @staticmethod
    def new_session_id() -> str:
        return secrets.token_urlsafe(24)

    def get(self, session_id: str | None) -> UserSessions | None:
        if not session_id:
            return None
        sessions = self._sessions.get(session_id)
        if sessions is None:
            return None
        now = self._clock()
        if self._is_stale(sessions, now):
            self.discard(session_id)
            return None
        sessions.last_seen = now
        return sessions

    def detached(self) -> UserSessions:
        """Return an empty, unregistered set of sessions."""
        return UserSessions(
            session_id=self.new_session_id(),
            providers={provider: AuthSession(provider=provider) for provider in AuthProvider},
            last_seen=self._clock(),
        )

    def get_or_create(self, session_id: str | None) -> UserSessions:
        existing = self.get(session_id)
        if existing is not None:
            return existing
        # Unknown ids from the client are never adopted.
        self.prune()
        self._make_room()
        sessions = self.detached()
        self._sessions[sessions.session_id] = sessions
        return sessions

    def _is_stale(self, sessions: UserSessions, now: float) -> bool:
        return not sessions.has_linked_provider and now - sessions.last_seen > self.pending_ttl_seconds

    def prune(self) -> int:
        """Drop expired sessions that never linked a provider; return how many went."""
        now = self._clock()
        stale = [session_id for session_id, sessions in self._sessions.items() if self._is_stale(sessions, now)]
        for session_id in stale:
            del self._sessions[session_id]
        if stale:
            logger.debug("Pruned %s pending auth sessions", len(stale))
        return len(stale)

    def _make_room(self) -> None:
        while self._sessions and len(self._sessions) >= self.max_sessions:
            pending = [sessions for sessions in self._sessions.values() if not sessions.has_linked_provider]
            candidates = pending or list(self._sessions.values())
            oldest = min(candidates, key=lambda sessions: sessions.last_seen)
            if not pending:
                logger.warning("Auth session registry full; evicting least recently used linked session")
            del self._sessions[oldest.session_id]

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)


auth_session_registry = AuthSessionRegistry(
    max_sessions=settings.SESSION_MAX_COUNT,
    pending_ttl_seconds=settings.SESSION_PENDING_TTL_SECONDS,
)
