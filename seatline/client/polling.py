"""Backoff schedule for reconnecting and polling."""

from dataclasses import dataclass, replace

MIN_BASE_SECONDS = 2.5


@dataclass(frozen=True)
class PollSchedule:
    """Immutable schedule state; every transition returns a new instance."""

    base: float = 4.0
    multiplier: float = 2.0
    cap: float = 60.0
    hidden_factor: float = 3.0
    failures: int = 0
    visible: bool = True

    def __post_init__(self):
        if self.base < MIN_BASE_SECONDS:
            object.__setattr__(self, "base", MIN_BASE_SECONDS)

    @property
    def delay(self) -> float:
        delay = self.base * (self.multiplier ** self.failures)
        if not self.visible:
            delay *= self.hidden_factor
        return min(delay, self.cap)

    def on_success(self) -> "PollSchedule":
        return replace(self, failures=0)

    def on_failure(self) -> "PollSchedule":
        # Stop counting once the cap is reached
        if self.base * (self.multiplier ** self.failures) >= self.cap:
            return self
        return replace(self, failures=self.failures + 1)

    def on_visibility(self, visible: bool) -> "PollSchedule":
        return replace(self, visible=visible)
