from __future__ import annotations

import logging
from typing import List, Protocol, Tuple


class Notifier(Protocol):
    """User-facing message channel (toasts, status lines, chat replies...)."""

    def info(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingNotifier:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._log = logger or logging.getLogger("funding.user")

    def info(self, message: str) -> None:
        self._log.info(message)

    def success(self, message: str) -> None:
        self._log.info(message)

    def warning(self, message: str) -> None:
        self._log.warning(message)

    def error(self, message: str) -> None:
        self._log.error(message)


class RecordingNotifier:
    """Keeps every message as (level, text); handy for consoles and tests."""

    def __init__(self) -> None:
        self.messages: List[Tuple[str, str]] = []

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def warning(self, message: str) -> None:
        self.messages.append(("warning", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def texts(self, level: str) -> List[str]:
        return [m for lvl, m in self.messages if lvl == level]


__all__ = ["Notifier", "LoggingNotifier", "RecordingNotifier"]
