from __future__ import annotations


class RecordingSink:
    """Diagnostic sink that keeps every report for assertions."""

    def __init__(self) -> None:
        self.reports: list[tuple[str, dict[str, object]]] = []

    def __call__(self, message: str, /, **context: object) -> None:
        self.reports.append((message, context))

    @property
    def messages(self) -> list[str]:
        return [message for message, _ in self.reports]
