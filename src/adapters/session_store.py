"""Fichero de sesión persistido (token, id de usuario, tipo de usuario).

Por qué está en adapters:
- El almacenamiento es un detalle de infraestructura: `core.session.SessionProvider`
  lo lee una vez al arrancar.
- Solo `login`/`logout` lo escriben.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from core.config import AppSettings, get_user_config_dir
from core.domain.models import Session

logger = logging.getLogger(__name__)


def default_session_path(settings: AppSettings | None = None) -> Path:
    if settings is not None and settings.session_path is not None:
        return settings.session_path
    return get_user_config_dir() / "session.json"


class SessionStore:
    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> Session:
        if not self.path.exists():
            return Session()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return Session.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("ignoring unreadable session file %s: %s", self.path, exc)
            return Session()

    def save(self, session: Session) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = session.model_dump(mode="json")
        self.path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        try:
            self.path.chmod(0o600)
        except OSError:
            logger.debug("could not restrict permissions on %s", self.path)
        return self.path

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
