from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Notice:
    title: str
    description: str = ""
    kind: str = "success"  # success | error | warning | info


class Notifier:
    """Fila de avisos transitórios (toasts) consumida pela UI a cada rerun."""

    def __init__(self) -> None:
        self.notices: list[Notice] = []

    def push(self, notice: Notice) -> None:
        self.notices.append(notice)

    def success(self, title: str, description: str = "") -> None:
        self.push(Notice(title, description, "success"))

    def error(self, title: str, description: str = "") -> None:
        self.push(Notice(title, description, "error"))

    def warning(self, title: str, description: str = "") -> None:
        self.push(Notice(title, description, "warning"))

    def drain(self) -> list[Notice]:
        out, self.notices = self.notices, []
        return out
