from dataclasses import dataclass
from enum import Enum


class AttemptPhase(Enum):
    FIRST_ATTEMPT = "first_attempt"
    POST_REFRESH_RETRY = "post_refresh_retry"


@dataclass
class AttemptState:
    """Per logical call. Shared by every backoff attempt of that call."""

    attempt_index: int = 0
    phase: AttemptPhase = AttemptPhase.FIRST_ATTEMPT
    primary_calls: int = 0
    refresh_calls: int = 0

    @property
    def is_post_refresh_retry(self) -> bool:
        return self.phase is AttemptPhase.POST_REFRESH_RETRY

    def may_refresh(self) -> bool:
        return self.phase is AttemptPhase.FIRST_ATTEMPT

    def mark_refreshed(self) -> None:
        self.phase = AttemptPhase.POST_REFRESH_RETRY
