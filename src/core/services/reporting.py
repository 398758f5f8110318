"""Single error-reporting hook for loads and mutations.

Every call site hands its failure to `ErrorReporter.report` instead of
repeating try/catch/toast. The reporter:
- emits exactly one toast per failure (server message, else the fallback),
- logs it,
- on `AuthExpired` navigates to the login route and fires the registered
  hooks (stop polling, clear cache).

Nothing is re-raised and nothing is retried.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from core.domain.errors import (
    AuthExpired,
    GENERIC_FAILURE,
    NetworkFailure,
    ServerFailure,
    SyncError,
    ValidationFailure,
)
from core.domain.models import Toast, ToastLevel
from core.interfaces.ui import Navigator, Notifier

logger = logging.getLogger(__name__)


class ErrorReporter:
    def __init__(
        self,
        notifier: Notifier,
        navigator: Navigator | None = None,
        *,
        login_route: str = "/login",
    ) -> None:
        self._notifier = notifier
        self._navigator = navigator
        self._login_route = login_route
        self._auth_hooks: list[Callable[[], None]] = []
        self.auth_expired = False

    def on_auth_expired(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a hook; returns a function that unregisters it."""

        self._auth_hooks.append(callback)

        def _remove() -> None:
            if callback in self._auth_hooks:
                self._auth_hooks.remove(callback)

        return _remove

    def success(self, text: str) -> None:
        self._notifier.notify(Toast(level=ToastLevel.SUCCESS, text=text))

    def info(self, text: str) -> None:
        self._notifier.notify(Toast(level=ToastLevel.INFO, text=text))

    def error(self, text: str) -> None:
        self._notifier.notify(Toast(level=ToastLevel.ERROR, text=text or GENERIC_FAILURE))

    def report(self, exc: BaseException, fallback: str = GENERIC_FAILURE) -> Toast:
        text = self.user_message(exc, fallback)
        toast = Toast(level=ToastLevel.ERROR, text=text)

        if isinstance(exc, AuthExpired):
            logger.warning("session expired: %s", exc.message)
            self._notifier.notify(toast)
            self._expire_session()
            return toast

        if isinstance(exc, ValidationFailure):
            logger.warning("rejected by server (%s): %s", exc.status_code, exc.message)
        elif isinstance(exc, (NetworkFailure, ServerFailure)):
            logger.warning("%s: %s", type(exc).__name__, exc.message)
        else:
            logger.error("unexpected failure: %s", exc, exc_info=exc)
        self._notifier.notify(toast)
        return toast

    @staticmethod
    def user_message(exc: BaseException, fallback: str = GENERIC_FAILURE) -> str:
        """Server-provided text for validation/auth failures, the fallback otherwise."""

        if isinstance(exc, (ValidationFailure, AuthExpired)) and exc.server_message:
            return exc.server_message
        return fallback or GENERIC_FAILURE

    @asynccontextmanager
    async def guard(self, fallback: str = GENERIC_FAILURE) -> AsyncIterator[None]:
        """Report any `SyncError` raised inside the block and swallow it."""

        try:
            yield
        except SyncError as exc:
            self.report(exc, fallback)

    def _expire_session(self) -> None:
        first = not self.auth_expired
        self.auth_expired = True
        for hook in list(self._auth_hooks):
            try:
                hook()
            except Exception:
                logger.exception("auth-expired hook failed")
        if first and self._navigator is not None:
            self._navigator.navigate(self._login_route)
