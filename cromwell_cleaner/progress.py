"""Time-throttled progress logging."""

from __future__ import annotations

import logging
import time

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600


def format_duration(seconds: float) -> str:
    """Format seconds to human readable duration"""
    if seconds < SECONDS_PER_MINUTE:
        return f"{int(seconds)}s"
    if seconds < SECONDS_PER_HOUR:
        minutes = int(seconds / SECONDS_PER_MINUTE)
        secs = int(seconds % SECONDS_PER_MINUTE)
        return f"{minutes}m {secs}s"
    hours = int(seconds / SECONDS_PER_HOUR)
    minutes = int((seconds % SECONDS_PER_HOUR) / SECONDS_PER_MINUTE)
    return f"{hours}h {minutes}m"


class ProgressTracker:
    """Logs a running count at most once per ``update_interval`` seconds."""

    def __init__(self, label: str, update_interval: float = 5.0, clock=time.monotonic):
        self.label = label
        self.update_interval = update_interval
        self._clock = clock
        self.start = clock()
        self.last_update = self.start

    def should_update(self, force: bool = False) -> bool:
        """Check if enough time has elapsed to update progress"""
        now = self._clock()
        if force or now - self.last_update >= self.update_interval:
            self.last_update = now
            return True
        return False

    def update(self, current: int, force: bool = False) -> None:
        """Log ``current`` if the interval has elapsed."""
        if self.should_update(force=force):
            elapsed = self._clock() - self.start
            logging.info("%s: %s so far (%s elapsed)", self.label, f"{current:,}", format_duration(elapsed))

    def finish(self, current: int) -> None:
        """Log the final count."""
        elapsed = self._clock() - self.start
        logging.info("%s: %s total in %s", self.label, f"{current:,}", format_duration(elapsed))
