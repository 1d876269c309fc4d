from dataclasses import dataclass
from typing import Sequence

from drillguard.errors import PolicyMisconfiguration


@dataclass(frozen=True)
class LockoutPolicy:
    """Thresholds and escalating durations for login lockouts.

    ``progressive_durations[i]`` is used for the (i+1)-th lockout of an
    identity inside the escalation window. Past the end of the table, or
    with progressive delay disabled, ``base_lockout_seconds`` applies.
    """

    max_attempts: int = 3
    base_lockout_seconds: int = 30
    progressive_enabled: bool = True
    progressive_durations: Sequence[int] = (30, 60, 300)
    attempt_counter_ttl_seconds: int = 3600
    escalation_counter_ttl_seconds: int = 86400

    def __post_init__(self):
        object.__setattr__(self, "progressive_durations", tuple(self.progressive_durations))
        self._validate()

    def _validate(self) -> None:
        if self.max_attempts <= 0:
            raise PolicyMisconfiguration(f"max_attempts must be positive, got {self.max_attempts}")
        if self.base_lockout_seconds <= 0:
            raise PolicyMisconfiguration(
                f"base_lockout_seconds must be positive, got {self.base_lockout_seconds}"
            )
        if self.progressive_enabled and not self.progressive_durations:
            raise PolicyMisconfiguration("progressive_durations is empty but progressive delay is enabled")
        for duration in self.progressive_durations:
            if duration <= 0:
                raise PolicyMisconfiguration(f"progressive durations must be positive, got {duration}")
        if self.attempt_counter_ttl_seconds <= 0:
            raise PolicyMisconfiguration("attempt_counter_ttl_seconds must be positive")
        if self.escalation_counter_ttl_seconds <= 0:
            raise PolicyMisconfiguration("escalation_counter_ttl_seconds must be positive")

    def duration_for(self, escalation_index: int) -> int:
        """Lockout length in seconds for the 1-based ``escalation_index``."""
        if self.progressive_enabled and 1 <= escalation_index <= len(self.progressive_durations):
            return self.progressive_durations[escalation_index - 1]
        return self.base_lockout_seconds
