"""Failed-login tracking and progressive lockout per email and per IP.

State lives entirely in a shared ``KeyValueStore`` so any number of workers
can serve login requests for the same account. Per scope and identity:

``login_attempts:{scope}:{identity}``
    consecutive failures, forgotten after ``attempt_counter_ttl_seconds``
``login_lockout_until:{scope}:{identity}``
    UNIX time the current lockout ends
``login_lockout_count:{scope}:{identity}``
    lockouts inside the escalation window, selects the next duration

The attempt counter is not reset when a lockout ends, so every failure past
the threshold re-arms the lockout until the counter expires or is cleared.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from drillguard.attempt_log import FAILED, LOCKED, AttemptLog, AttemptRecord, safe_append
from drillguard.lockout_policy import LockoutPolicy
from drillguard.store import KeyValueStore, system_time

logger = logging.getLogger(__name__)

EMAIL_SCOPE = "email"
IP_SCOPE = "ip"


@dataclass(frozen=True)
class LockoutStatus:
    retry_after_seconds: int


@dataclass(frozen=True)
class FailedAttempt:
    retry_after_seconds: int = 0

    @property
    def locked(self) -> bool:
        return self.retry_after_seconds > 0


class LoginAttemptTracker:
    def __init__(
        self,
        store: KeyValueStore,
        policy: LockoutPolicy,
        attempt_log: AttemptLog,
        clock: Callable[[], float] = system_time,
    ):
        self.store = store
        self.policy = policy
        self.attempt_log = attempt_log
        self._clock = clock

    @staticmethod
    def _attempts_key(scope: str, identity: str) -> str:
        return f"login_attempts:{scope}:{identity}"

    @staticmethod
    def _lockout_key(scope: str, identity: str) -> str:
        return f"login_lockout_until:{scope}:{identity}"

    @staticmethod
    def _lockout_count_key(scope: str, identity: str) -> str:
        return f"login_lockout_count:{scope}:{identity}"

    def _now(self) -> int:
        return int(self._clock())

    def is_locked_out(self, email: str | None, ip: str | None) -> LockoutStatus | None:
        """Return the wait before another attempt is allowed, or None.

        When both the email and the IP are locked the longer wait wins. A
        scope passed as None is not looked up.
        """
        now = self._now()
        retry_after = None
        for scope, identity in ((EMAIL_SCOPE, email), (IP_SCOPE, ip)):
            if identity is None:
                continue
            locked_until = self.store.get(self._lockout_key(scope, identity))
            if locked_until is not None and locked_until > now:
                retry_after = max(retry_after or 0, locked_until - now)

        if retry_after is None:
            return None
        return LockoutStatus(retry_after_seconds=retry_after)

    def record_failed_attempt(self, email: str, ip: str) -> FailedAttempt:
        """Count a failed login and lock out any scope that reached the threshold.

        ``retry_after_seconds`` covers only lockouts triggered by this call; a
        lockout already running is reported by ``is_locked_out``.
        """
        self._log(email, ip, FAILED)

        ttl = self.policy.attempt_counter_ttl_seconds
        email_attempts = self.store.increment(self._attempts_key(EMAIL_SCOPE, email), ttl)
        ip_attempts = self.store.increment(self._attempts_key(IP_SCOPE, ip), ttl)

        retry_after = 0

        email_duration = self._lock_if_exceeded(EMAIL_SCOPE, email, email_attempts)
        if email_duration:
            retry_after = max(retry_after, email_duration)
            self._log(email, ip, LOCKED)

        ip_duration = self._lock_if_exceeded(IP_SCOPE, ip, ip_attempts)
        if ip_duration:
            retry_after = max(retry_after, ip_duration)
            # one "locked" row per call
            if not email_duration:
                self._log(email, ip, LOCKED)

        return FailedAttempt(retry_after_seconds=retry_after)

    def _lock_if_exceeded(self, scope: str, identity: str, attempts: int) -> int:
        if attempts < self.policy.max_attempts:
            return 0

        escalation = self.store.increment(
            self._lockout_count_key(scope, identity),
            self.policy.escalation_counter_ttl_seconds,
        )
        duration = self.policy.duration_for(escalation)
        self.store.put(self._lockout_key(scope, identity), self._now() + duration, duration + 1)
        logger.info(
            "Locked %s %s for %ss (attempts=%d, lockout #%d)",
            scope, identity, duration, attempts, escalation,
        )
        return duration

    def clear_attempts(self, email: str, ip: str) -> None:
        """Forget counters, lockouts and escalation history for both scopes."""
        keys = []
        for scope, identity in ((EMAIL_SCOPE, email), (IP_SCOPE, ip)):
            keys.extend((
                self._attempts_key(scope, identity),
                self._lockout_key(scope, identity),
                self._lockout_count_key(scope, identity),
            ))
        self.store.delete(*keys)

    def failed_attempt_count(self, email: str) -> int:
        return self.store.get(self._attempts_key(EMAIL_SCOPE, email)) or 0

    def _log(self, email: str, ip: str, status: str) -> None:
        record = AttemptRecord(
            email=email,
            ip=ip,
            status=status,
            timestamp=datetime.fromtimestamp(self._clock(), tz=timezone.utc),
        )
        result = safe_append(self.attempt_log, record)
        if not result.ok:
            logger.warning(
                "Could not write %s attempt for %s from %s: %r",
                status, email, ip, result.error,
            )
