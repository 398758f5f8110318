"""Implementaciones Rich de los colaboradores de UI.

Por qué está en adapters:
- `RichNotifier` pinta cada toast como una línea de color.
- `ConsoleNavigator` convierte la redirección al login en una instrucción
  para el usuario de la CLI.
"""

from __future__ import annotations

from rich.console import Console

from core.domain.models import Toast, ToastLevel

_STYLES = {
    ToastLevel.SUCCESS: ("green", "✓"),
    ToastLevel.ERROR: ("red", "✗"),
    ToastLevel.INFO: ("cyan", "•"),
}


class RichNotifier:
    def __init__(self, console: Console) -> None:
        self._console = console
        self.history: list[Toast] = []

    def notify(self, toast: Toast) -> None:
        self.history.append(toast)
        style, mark = _STYLES[toast.level]
        self._console.print(f"[{style}]{mark} {toast.text}[/{style}]", highlight=False)

    def had_errors(self) -> bool:
        return any(t.level is ToastLevel.ERROR for t in self.history)


class ConsoleNavigator:
    def __init__(self, console: Console) -> None:
        self._console = console
        self.routes: list[str] = []

    def navigate(self, route: str) -> None:
        self.routes.append(route)
        self._console.print(
            f"[yellow]Session expired ({route}).[/yellow] Run `dulas login --token <token>` and retry."
        )
