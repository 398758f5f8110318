"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (HTTP, sesión) lean config de forma consistente.
- El transporte de autenticación se resuelve una sola vez: todas las
  peticiones prueban identidad del mismo modo.
"""

from __future__ import annotations

import os
import sys
from enum import Enum
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthTransport(str, Enum):
    """How the client proves caller identity to the API."""

    BEARER = "bearer"
    COOKIE = "cookie"


def get_user_config_dir() -> Path:
    """Per-user configuration directory (cross-platform, no extra dependencies)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "dulas"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "dulas"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "dulas"
    return Path.home() / ".config" / "dulas"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str]) -> Path:
    """Write/update variables in the user's global .env."""

    env_path = get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# DULAS client config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Application-wide settings, validated at the env-var boundary."""

    model_config = SettingsConfigDict(
        env_prefix="DULAS_",
        extra="ignore",
        case_sensitive=False,
        # Project .env first (dev), then the user's global config.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    api_base_url: str = Field(
        default="http://localhost:3000",
        min_length=8,
        description="Base URL of the portal API (paths are /api/<domain>/<resource>).",
    )
    auth_transport: AuthTransport = Field(
        default=AuthTransport.BEARER,
        description="Single auth transport for every request: bearer header or session cookie.",
    )
    session_cookie_name: str = Field(
        default="token",
        min_length=1,
        description="Cookie name carrying the session when auth_transport=cookie.",
    )
    http_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Client-side timeout per request (seconds).",
    )
    user_agent: str = Field(
        default="dulas-client/0.1",
        min_length=1,
        description="User-Agent sent with API requests.",
    )

    poll_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Default cadence for polling a resource (seconds).",
    )
    login_route: str = Field(
        default="/login",
        min_length=1,
        description="Route the navigator is sent to when the session expires.",
    )
    session_path: Path | None = Field(
        default=None,
        description="Override for the persisted session file.",
    )

    log_level: str = Field(
        default="WARNING",
        description="Root log level for the CLI (DEBUG, INFO, WARNING, ERROR).",
    )
