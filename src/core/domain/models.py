"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Valida solo lo imprescindible (el `id` de cada registro) y deja el resto
  del payload tal como lo devolvió la API.
- Filtros, orden y selección son el estado que controla el usuario en cada página.

Nota:
- Estos modelos describen *qué* tiene el cliente, no *cómo* se obtiene.
- Nada se persiste: cada instancia vive lo que vive su página.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class RemoteEntity(BaseModel):
    """A server record identified by a string `id`.

    Every other attribute is whatever the API returned; shape is not
    validated beyond the id.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1, description="Server-assigned identifier.")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RemoteEntity":
        data = dict(payload)
        if "id" not in data and "_id" in data:
            data["id"] = data["_id"]
        if data.get("id") is not None:
            data["id"] = str(data["id"])
        return cls.model_validate(data)

    def get_path(self, path: str, default: Any = None) -> Any:
        """Read a dotted attribute path (`lawyerProfile.caseLoad`)."""

        current: Any = self.model_dump()
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def with_fields(self, **fields: Any) -> "RemoteEntity":
        return RemoteEntity.model_validate({**self.model_dump(), **fields})


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    def flipped(self) -> "SortDirection":
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


class SortState(BaseModel):
    """Single-key ordering of a projection."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=1)
    direction: SortDirection = SortDirection.ASC

    def toggled(self, key: str, *, initial: SortDirection = SortDirection.ASC) -> "SortState":
        """Header-click behavior: same key flips, a new key starts at `initial`."""

        if key == self.key:
            return SortState(key=key, direction=self.direction.flipped())
        return SortState(key=key, direction=initial)


class FilterState(BaseModel):
    """Primitive filter fields read by the projection.

    A categorical filter whose value is empty or `"all"` is inactive.
    """

    model_config = ConfigDict(frozen=True)

    search: str = ""
    search_fields: tuple[str, ...] = ("name",)
    equals: dict[str, str] = Field(default_factory=dict)
    date_field: str | None = None
    date_from: date | None = None
    date_to: date | None = None

    def active_equals(self) -> dict[str, str]:
        return {
            key: value
            for key, value in self.equals.items()
            if value and value.strip().lower() != "all"
        }


class SelectionSet:
    """Ids picked for a bulk operation."""

    def __init__(self, ids: Iterable[str] = ()) -> None:
        self._ids: set[str] = set(ids)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._ids

    def __iter__(self):
        return iter(sorted(self._ids))

    def __len__(self) -> int:
        return len(self._ids)

    def __bool__(self) -> bool:
        return bool(self._ids)

    def add(self, entity_id: str) -> None:
        self._ids.add(entity_id)

    def discard(self, entity_id: str) -> None:
        self._ids.discard(entity_id)

    def toggle(self, entity_id: str) -> None:
        if entity_id in self._ids:
            self._ids.discard(entity_id)
        else:
            self._ids.add(entity_id)

    def select_all(self, visible_ids: Iterable[str]) -> None:
        """Header checkbox: select every visible row, or clear if all are already selected."""

        visible = set(visible_ids)
        if visible and visible == self._ids:
            self._ids.clear()
        else:
            self._ids = visible

    def clear(self) -> None:
        self._ids.clear()

    def ids(self) -> list[str]:
        return sorted(self._ids)


class Session(BaseModel):
    """Caller identity resolved once at bootstrap."""

    token: str | None = Field(default=None, description="Bearer/session token.")
    user_id: str | None = Field(default=None)
    user_type: str | None = Field(default=None, description="admin, coordinator, lawyer, client.")

    @property
    def authenticated(self) -> bool:
        return bool(self.token)


class ToastLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class Toast(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: ToastLevel
    text: str = Field(..., min_length=1)


class MutationState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    FAILURE = "failure"


class Countdown(BaseModel):
    """Time remaining until the next scheduled refresh, derived from one deadline."""

    model_config = ConfigDict(frozen=True)

    total_seconds: float = Field(..., ge=0)
    days: int = Field(..., ge=0)
    hours: int = Field(..., ge=0, le=23)
    minutes: int = Field(..., ge=0, le=59)
    seconds: int = Field(..., ge=0, le=59)

    @classmethod
    def from_seconds(cls, remaining: float) -> "Countdown":
        remaining = max(0.0, remaining)
        whole = int(remaining)
        days, rest = divmod(whole, 86_400)
        hours, rest = divmod(rest, 3_600)
        minutes, seconds = divmod(rest, 60)
        return cls(
            total_seconds=remaining,
            days=days,
            hours=hours,
            minutes=minutes,
            seconds=seconds,
        )

    def label(self) -> str:
        if self.days:
            return f"{self.days}d {self.hours:02d}:{self.minutes:02d}:{self.seconds:02d}"
        return f"{self.hours:02d}:{self.minutes:02d}:{self.seconds:02d}"


def message_text(value: Any) -> str | None:
    """A non-empty string, or the `message` of a nested error object."""

    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, dict):
        nested = value.get("message")
        if isinstance(nested, str) and nested.strip():
            return nested.strip()
    return None


class ApiEnvelope(BaseModel):
    """`{success, data|<bespoke key>, message|error}` as returned by the portal API.

    `message` is not always text: some routes put the affected record there
    and the human readable reason in `error`.
    """

    model_config = ConfigDict(extra="allow")

    success: bool
    data: Any = None
    message: Any = None
    error: Any = None

    def failure_text(self) -> str | None:
        for value in (self.message, self.error):
            text = message_text(value)
            if text:
                return text
        return None

    def payload(self, key: str = "data") -> Any:
        if key == "data":
            return self.data
        extra = self.model_extra or {}
        return extra.get(key)


class WorkloadStats(BaseModel):
    """Summary numbers the workload page derives levels and percentages from."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    average_workload: float = Field(default=0.0, alias="averageWorkload", ge=0)
    max_workload: float = Field(default=0.0, alias="maxWorkload", ge=0)
    min_workload: float = Field(default=0.0, alias="minWorkload", ge=0)
    total_cases: int = Field(default=0, alias="totalCases", ge=0)


class LoadRecord(BaseModel):
    """Bookkeeping of the last completed load of a collection."""

    sequence: int = Field(..., ge=0)
    finished_at: datetime
    item_count: int = Field(..., ge=0)
