import random
from dataclasses import dataclass
from typing import Union

from .outcomes import (
    Malformed,
    Outcome,
    RateLimited,
    ServerError,
    TransportFailure,
)

# Longest server-mandated wait (seconds) we sleep through before surfacing the 429
DEFAULT_MAX_RETRY_AFTER = 60.0


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with jitter for transient failures.

    Stateless: ``delay_for`` and ``should_retry`` depend only on their
    arguments and the policy values, so one instance can be shared by any
    number of concurrent calls.
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_base: float = 2.0
    jitter_fraction: float = 0.1
    max_retry_after: float = DEFAULT_MAX_RETRY_AFTER

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")
        if self.backoff_base < 1.0:
            raise ValueError("backoff_base must be >= 1.0")
        if not 0.0 <= self.jitter_fraction < 1.0:
            raise ValueError("jitter_fraction must be in [0, 1)")

    def raw_delay(self, attempt: int) -> float:
        """Un-jittered delay before ``attempt``; attempt 0 is the first call."""
        if attempt <= 0:
            return 0.0
        return min(self.max_delay, self.initial_delay * self.backoff_base ** (attempt - 1))

    def delay_for(self, attempt: int, rng: Union[random.Random, None] = None) -> float:
        raw = self.raw_delay(attempt)
        if raw == 0.0:
            return 0.0
        uniform = (rng or random).uniform
        jitter = raw * self.jitter_fraction * uniform(-1.0, 1.0)
        return max(0.0, raw + jitter)

    def should_retry(self, outcome: Outcome, attempt: int) -> bool:
        if attempt >= self.max_retries:
            return False
        if isinstance(outcome, (TransportFailure, ServerError)):
            return True
        if isinstance(outcome, Malformed):
            return outcome.retryable
        if isinstance(outcome, RateLimited):
            return outcome.retry_after is None or outcome.retry_after <= self.max_retry_after
        # Success, ClientError and Unauthorized are final here; Unauthorized
        # belongs to the refresh path of the executor.
        return False

    # ---------- presets ----------
    @classmethod
    def default(cls) -> "RetryPolicy":
        return DEFAULT_POLICY

    @classmethod
    def aggressive(cls) -> "RetryPolicy":
        return AGGRESSIVE_POLICY

    @classmethod
    def conservative(cls) -> "RetryPolicy":
        return CONSERVATIVE_POLICY


DEFAULT_POLICY = RetryPolicy(
    max_retries=3, initial_delay=1.0, max_delay=30.0, backoff_base=2.0, jitter_fraction=0.1
)
AGGRESSIVE_POLICY = RetryPolicy(
    max_retries=5, initial_delay=0.5, max_delay=60.0, backoff_base=1.5, jitter_fraction=0.2
)
CONSERVATIVE_POLICY = RetryPolicy(
    max_retries=2, initial_delay=2.0, max_delay=10.0, backoff_base=2.0, jitter_fraction=0.05
)
# no retries at all; useful for auth exchanges the caller wants surfaced immediately
NO_RETRY_POLICY = RetryPolicy(max_retries=0)

PRESETS: dict[str, RetryPolicy] = {
    "default": DEFAULT_POLICY,
    "aggressive": AGGRESSIVE_POLICY,
    "conservative": CONSERVATIVE_POLICY,
    "none": NO_RETRY_POLICY,
}


def coerce_policy(policy: Union[object, None]) -> RetryPolicy:
    """Turn None | str | RetryPolicy into a RetryPolicy.

    Accepted inputs:
      - None            -> default preset
      - "default" | "aggressive" | "conservative" | "none"
      - RetryPolicy instance (returned as-is)
    """
    if policy is None:
        return DEFAULT_POLICY
    if isinstance(policy, RetryPolicy):
        return policy
    if isinstance(policy, str):
        try:
            return PRESETS[policy.lower()]
        except KeyError:
            raise ValueError(
                f"Unknown retry policy {policy!r}. Use one of {sorted(PRESETS)} or a RetryPolicy."
            ) from None
    raise TypeError("retry policy must be None, a preset name, or a RetryPolicy")
