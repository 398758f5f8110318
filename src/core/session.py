"""Session provider.

The session is resolved once at bootstrap and passed explicitly to whatever
needs it (the Fetch Client, pages). Components never read storage themselves.
"""

from __future__ import annotations

from typing import Protocol

from core.domain.errors import AuthExpired
from core.domain.models import Session


class SessionSource(Protocol):
    def load(self) -> Session:
        ...


class SessionProvider:
    def __init__(self, source: SessionSource, *, override_token: str | None = None) -> None:
        self._source = source
        self._override_token = override_token
        self._session: Session | None = None

    @property
    def session(self) -> Session:
        if self._session is None:
            session = self._source.load()
            if self._override_token:
                session = session.model_copy(update={"token": self._override_token})
            self._session = session
        return self._session

    def require(self) -> Session:
        """The current session, or `AuthExpired` before any request is sent."""

        session = self.session
        if not session.authenticated:
            raise AuthExpired()
        return session

    def expire(self) -> None:
        """Drop the in-memory session after a 401; the next `require()` fails fast."""

        self._session = Session()
