import logging
import os
import random
from dataclasses import dataclass

from memstack.errors import ConfigError

logger = logging.getLogger(__name__)

# Default budget for waiting on a service port or health endpoint
DEFAULT_READY_ATTEMPTS = 30
DEFAULT_READY_DELAY = 2.0

# Default budget for pulling the embedding model
DEFAULT_PULL_ATTEMPTS = 3
DEFAULT_PULL_DELAY = 5.0


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded attempt budget with a delay between attempts."""

    max_attempts: int
    delay: float
    backoff_factor: float = 1.0
    jitter: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay < 0:
            raise ValueError("delay must be non-negative")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")
        if self.jitter < 0:
            raise ValueError("jitter must be non-negative")

    def delay_for(self, attempt: int) -> float:
        """
        Seconds to wait after a failed ``attempt`` (1-based) before the next one.

        A backoff_factor of 1.0 gives the fixed delay; anything larger grows
        the wait exponentially.
        """
        base = self.delay * (self.backoff_factor ** max(0, attempt - 1))
        if self.jitter:
            base += random.uniform(0, self.jitter)
        return base


DEFAULT_POLICIES: dict[str, RetryPolicy] = {
    "readiness": RetryPolicy(max_attempts=DEFAULT_READY_ATTEMPTS, delay=DEFAULT_READY_DELAY),
    "model_pull": RetryPolicy(max_attempts=DEFAULT_PULL_ATTEMPTS, delay=DEFAULT_PULL_DELAY),
}


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def _env_policy(prefix: str, default_attempts: int, default_delay: float) -> RetryPolicy:
    attempts_var = f"MEMSTACK_{prefix}_MAX_ATTEMPTS"
    delay_var = f"MEMSTACK_{prefix}_DELAY"
    try:
        return RetryPolicy(
            max_attempts=_env_number(attempts_var, default_attempts, int),
            delay=_env_number(delay_var, default_delay, float),
        )
    except ValueError as e:
        raise ConfigError(f"Invalid {attempts_var}/{delay_var}: {e}") from e


def load_policies_from_env() -> dict[str, RetryPolicy]:
    """
    Load retry policies from environment variables, falling back to defaults.

    Environment variables:
        MEMSTACK_READY_MAX_ATTEMPTS: Probes per service before giving up (default: 30)
        MEMSTACK_READY_DELAY: Seconds between readiness probes (default: 2.0)
        MEMSTACK_PULL_MAX_ATTEMPTS: Model pull attempts (default: 3)
        MEMSTACK_PULL_DELAY: Seconds between model pull attempts (default: 5.0)

    Raises:
        ConfigError: A value is not a number or is out of range.
    """
    policies = dict(DEFAULT_POLICIES)

    if os.getenv("MEMSTACK_READY_MAX_ATTEMPTS") or os.getenv("MEMSTACK_READY_DELAY"):
        policies["readiness"] = _env_policy("READY", DEFAULT_READY_ATTEMPTS, DEFAULT_READY_DELAY)

    if os.getenv("MEMSTACK_PULL_MAX_ATTEMPTS") or os.getenv("MEMSTACK_PULL_DELAY"):
        policies["model_pull"] = _env_policy("PULL", DEFAULT_PULL_ATTEMPTS, DEFAULT_PULL_DELAY)

    logger.debug("Retry policies: %s", policies)
    return policies
