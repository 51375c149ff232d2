"""
Logging utilities for the vitals engine.
"""

import logging
import time
from typing import Callable, Dict, Optional


class RateLimitedLogger:
    """Rate-limited logger to prevent per-frame log spam."""

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        rate_limit_seconds: float = 60.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize rate-limited logger.

        Args:
            logger: Underlying stdlib logger (defaults to this module's logger)
            rate_limit_seconds: Minimum time between identical log messages
            clock: Monotonic seconds source, injectable for tests
        """
        self.logger = logger or logging.getLogger(__name__)
        self.rate_limit_seconds = rate_limit_seconds
        self._clock = clock or time.monotonic
        self._last_logs: Dict[str, float] = {}
        self.suppressed = 0

    def _should_log(self, key: str) -> bool:
        """Check if message should be logged based on rate limiting."""
        now = self._clock()
        last = self._last_logs.get(key)
        if last is None or now - last >= self.rate_limit_seconds:
            self._last_logs[key] = now
            return True
        self.suppressed += 1
        return False

    def warn_once(self, message: str, *args, key: Optional[str] = None) -> None:
        """Log warning message only once per rate limit period."""
        if self._should_log(key or message):
            self.logger.warning(message, *args)

    def error_once(self, message: str, *args, key: Optional[str] = None) -> None:
        """Log error message only once per rate limit period."""
        if self._should_log(key or message):
            self.logger.error(message, *args)

    def info_once(self, message: str, *args, key: Optional[str] = None) -> None:
        """Log info message only once per rate limit period."""
        if self._should_log(key or message):
            self.logger.info(message, *args)

    def debug_once(self, message: str, *args, key: Optional[str] = None) -> None:
        """Log debug message only once per rate limit period."""
        if self._should_log(key or message):
            self.logger.debug(message, *args)


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for CLI entry points."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
