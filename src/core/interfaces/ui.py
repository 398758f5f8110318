"""Contratos de los colaboradores de UI de una página.

Por qué Protocol:
- Define un contrato estructural (duck typing) sin herencia rígida.
- La consola Rich los implementa para la CLI; los tests, con simples grabadores.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.domain.models import Toast


@runtime_checkable
class Notifier(Protocol):
    """Toast sink: every reported outcome becomes exactly one `Toast`."""

    def notify(self, toast: Toast) -> None:
        ...


@runtime_checkable
class Navigator(Protocol):
    """Leaves the current page, e.g. to the login route after a 401."""

    def navigate(self, route: str) -> None:
        ...
