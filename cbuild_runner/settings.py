"""
Timing and policy settings for the build runner.

Environment Variables:
    CBUILD_IDLE_POLL_INTERVAL: Seconds to wait when the log stream has no new data (default: 2.0)
    CBUILD_STEADY_POLL_INTERVAL: Seconds between log page fetches (default: 5.0)
    CBUILD_WAIT_POLL_INTERVAL: Seconds between build status checks (default: 6.0)
    CBUILD_MAX_WAIT_ATTEMPTS: Status checks before giving up on a build (default: 100)
    CBUILD_DEDUP_CAPACITY: Number of recent log lines remembered for de-duplication (default: 1024)
    CBUILD_FAIL_ON_LOG_ERROR: Abort the build wait when log streaming fails (default: false)
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from cbuild_common.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_IDLE_POLL_INTERVAL = 2.0
DEFAULT_STEADY_POLL_INTERVAL = 5.0
DEFAULT_WAIT_POLL_INTERVAL = 6.0
DEFAULT_MAX_WAIT_ATTEMPTS = 100
DEFAULT_DEDUP_CAPACITY = 1024


@dataclass
class RunnerSettings:
    """Named timing values for the log tailer and completion waiter."""

    idle_poll_interval: float = DEFAULT_IDLE_POLL_INTERVAL
    steady_poll_interval: float = DEFAULT_STEADY_POLL_INTERVAL
    wait_poll_interval: float = DEFAULT_WAIT_POLL_INTERVAL
    max_wait_attempts: int = DEFAULT_MAX_WAIT_ATTEMPTS
    dedup_capacity: int = DEFAULT_DEDUP_CAPACITY
    fail_on_log_error: bool = False

    def validate(self) -> None:
        """
        Check that all intervals and limits are positive.

        Raises:
            ConfigurationError: If any value is out of range
        """
        for name in (
            "idle_poll_interval",
            "steady_poll_interval",
            "wait_poll_interval",
            "max_wait_attempts",
            "dedup_capacity",
        ):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RunnerSettings":
        """
        Build settings from environment variables, falling back to defaults.

        Invalid values are logged and replaced by the default.
        """
        env = os.environ if environ is None else environ
        return cls(
            idle_poll_interval=_read_number(
                env, "CBUILD_IDLE_POLL_INTERVAL", DEFAULT_IDLE_POLL_INTERVAL, float
            ),
            steady_poll_interval=_read_number(
                env, "CBUILD_STEADY_POLL_INTERVAL", DEFAULT_STEADY_POLL_INTERVAL, float
            ),
            wait_poll_interval=_read_number(
                env, "CBUILD_WAIT_POLL_INTERVAL", DEFAULT_WAIT_POLL_INTERVAL, float
            ),
            max_wait_attempts=_read_number(
                env, "CBUILD_MAX_WAIT_ATTEMPTS", DEFAULT_MAX_WAIT_ATTEMPTS, int
            ),
            dedup_capacity=_read_number(
                env, "CBUILD_DEDUP_CAPACITY", DEFAULT_DEDUP_CAPACITY, int
            ),
            fail_on_log_error=env.get("CBUILD_FAIL_ON_LOG_ERROR", "").lower()
            in ("1", "true", "yes"),
        )


def _read_number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw}, using default {default}")
        return default
    if value <= 0:
        logger.warning(f"Invalid {name}={value}, using default {default}")
        return default
    return value
