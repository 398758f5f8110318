from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from adapters.http_client import ApiClient
from core.config import AppSettings
from core.domain.models import RemoteEntity, Session, Toast, ToastLevel
from core.services.reporting import ErrorReporter

BASE_URL = "http://portal.test"


@pytest.fixture(autouse=True)
def _isolate_user_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("DULAS_API_BASE_URL", BASE_URL)
    monkeypatch.setenv("DULAS_SESSION_PATH", str(tmp_path / "session.json"))
    monkeypatch.delenv("DULAS_TOKEN", raising=False)
    monkeypatch.delenv("DULAS_AUTH_TRANSPORT", raising=False)


class RecordingNotifier:
    def __init__(self) -> None:
        self.toasts: list[Toast] = []

    def notify(self, toast: Toast) -> None:
        self.toasts.append(toast)

    def texts(self, level: ToastLevel | None = None) -> list[str]:
        return [t.text for t in self.toasts if level is None or t.level is level]


class RecordingNavigator:
    def __init__(self) -> None:
        self.routes: list[str] = []

    def navigate(self, route: str) -> None:
        self.routes.append(route)


class FakeClock:
    """Monotonic clock whose `sleep` advances time instead of waiting."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds
        await asyncio.sleep(0)


async def spin_until(predicate: Callable[[], bool], *, max_steps: int = 2000) -> bool:
    for _ in range(max_steps):
        if predicate():
            return True
        await asyncio.sleep(0)
    return predicate()


async def spin(steps: int = 200) -> None:
    for _ in range(steps):
        await asyncio.sleep(0)


def entities(*rows: dict[str, Any]) -> list[RemoteEntity]:
    return [RemoteEntity.from_payload(row) for row in rows]


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode("utf-8"),
                          headers={"content-type": "application/json"})


def make_api(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    settings: AppSettings | None = None,
    session: Session | None = None,
) -> ApiClient:
    return ApiClient.from_settings(
        settings or AppSettings(api_base_url=BASE_URL),
        session if session is not None else Session(token="t0k3n"),
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def navigator() -> RecordingNavigator:
    return RecordingNavigator()


@pytest.fixture
def reporter(notifier: RecordingNotifier, navigator: RecordingNavigator) -> ErrorReporter:
    return ErrorReporter(notifier, navigator, login_route="/login")
