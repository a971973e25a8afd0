"""Injectable sink for non-fatal diagnostics such as corrupt stored data."""

from __future__ import annotations

import logging
from typing import Protocol


class DiagnosticSink(Protocol):
    def __call__(self, message: str, /, **context: object) -> None: ...


def logging_sink(logger: logging.Logger) -> DiagnosticSink:
    """Report diagnostics as warnings on ``logger``."""

    def sink(message: str, /, **context: object) -> None:
        if context:
            details = ", ".join(f"{key}={value!r}" for key, value in sorted(context.items()))
            logger.warning("%s (%s)", message, details)
        else:
            logger.warning("%s", message)

    return sink
