from __future__ import annotations

import logging
import threading
from typing import Any

from utils.rows import row_value


logger = logging.getLogger(__name__)


def describe_error(error: Any) -> str:
    """Render ``code message`` for storage errors and plain exceptions alike."""
    if error is None:
        return ""
    parts = [row_value(error, "code"), row_value(error, "message")]
    suffix = " ".join(str(part) for part in parts if part)
    return suffix or str(error)


class EngineDiagnostics:
    """
    Rate-limited failure reporting for the cycle engine.

    Each event name is logged at most once for the lifetime of the handle.
    The application creates one handle at startup and passes it to the
    services that need it.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._logger = log or logger
        self._logged: set[str] = set()
        self._lock = threading.Lock()

    def log_once(self, event: str, error: Any) -> bool:
        if error is None:
            return False
        with self._lock:
            if event in self._logged:
                return False
            self._logged.add(event)
        self._logger.error("%s %s", event, describe_error(error))
        return True

    def has_logged(self, event: str) -> bool:
        with self._lock:
            return event in self._logged
