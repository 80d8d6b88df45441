"""Rate-limited warning logger.

Availability probes and config persistence can fail on every status poll.
``ThrottledLogger`` lets those paths warn without flooding the log: each key
emits at most once per window.

Throttle state belongs to the instance. Construct one per registry (or per
process) and pass it to collaborators; a restart starts with an empty map.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

DEFAULT_WINDOW_S = 10.0


class ThrottledLogger:
    """Emit at most one warning per key within ``window_s`` seconds."""

    def __init__(
        self,
        logger: logging.Logger | None = None,
        *,
        window_s: float = DEFAULT_WINDOW_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_s < 0:
            raise ValueError("window_s must be >= 0")
        self._logger = logger or logging.getLogger("agentlink")
        self._window_s = window_s
        self._clock = clock
        self._last_emitted: dict[str, float] = {}

    def warning(self, key: str, message: str, *args: Any) -> bool:
        """Log ``message`` under ``key`` unless it was logged recently.

        Returns True when the record was emitted.
        """
        key = key or "unknown"
        now = self._clock()
        last = self._last_emitted.get(key)
        if last is not None and now - last < self._window_s:
            return False
        self._last_emitted[key] = now
        self._logger.warning("%s: " + message, key, *args)
        return True

    def reset(self) -> None:
        """Forget all throttle timestamps."""
        self._last_emitted.clear()
