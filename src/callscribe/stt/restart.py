"""Exponential backoff state for automatic recognizer restarts."""

from __future__ import annotations

from dataclasses import dataclass

from callscribe.config import RestartConfig


@dataclass
class RestartPolicy:
    """Attempt counter and current delay between restarts.

    Reset at every session start and on every non-empty result.
    """

    initial_backoff_ms: float = 1000.0
    multiplier: float = 1.5
    max_backoff_ms: float = 10000.0
    max_attempts: int = 5
    attempt_count: int = 0
    current_backoff_ms: float = 1000.0

    def __post_init__(self) -> None:
        self.current_backoff_ms = min(self.initial_backoff_ms, self.max_backoff_ms)

    @classmethod
    def from_config(cls, config: RestartConfig) -> RestartPolicy:
        return cls(
            initial_backoff_ms=config.initial_backoff_ms,
            multiplier=config.backoff_multiplier,
            max_backoff_ms=config.max_backoff_ms,
            max_attempts=config.max_attempts,
        )

    @property
    def exhausted(self) -> bool:
        """True once no further restart may be attempted."""
        return self.attempt_count >= self.max_attempts

    def record_attempt(self) -> None:
        """Count a restart and grow the delay for the next one."""
        self.attempt_count += 1
        self.current_backoff_ms = min(self.current_backoff_ms * self.multiplier, self.max_backoff_ms)

    def reset(self) -> None:
        self.attempt_count = 0
        self.current_backoff_ms = min(self.initial_backoff_ms, self.max_backoff_ms)
