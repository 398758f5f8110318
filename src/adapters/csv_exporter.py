"""Exportación CSV de la vista proyectada.

Por qué CSV local:
- Escribe exactamente lo que el usuario ve (filtrado y ordenado) sin ida y vuelta al servidor.
- Las exportaciones del servidor pasan por `MutationDispatcher.export_csv`.
"""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Sequence

from core.domain.models import RemoteEntity


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    return str(value)


def export_entities_csv(
    *,
    items: Sequence[RemoteEntity],
    columns: Sequence[str],
    output_path: Path,
) -> Path:
    """Write UTF-8 CSV with one header row named after `columns` (dotted paths allowed)."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(columns)
        for entity in items:
            writer.writerow([_cell(entity.get_path(column)) for column in columns])
    return output_path
