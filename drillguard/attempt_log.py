"""Append-only sinks for failed and locked login attempts.

Sinks report failures through ``WriteResult`` instead of raising; lockout
decisions must not depend on whether the audit trail is writable.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError

from drillguard import db

FAILED = "failed"
LOCKED = "locked"


@dataclass(frozen=True)
class AttemptRecord:
    email: str
    ip: str
    status: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "email": self.email,
            "ip": self.ip,
            "status": self.status,
        }


@dataclass(frozen=True)
class WriteResult:
    ok: bool
    error: Exception | None = None

    @classmethod
    def success(cls) -> "WriteResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: Exception) -> "WriteResult":
        return cls(ok=False, error=error)


class AttemptLog(Protocol):
    def append(self, record: AttemptRecord) -> WriteResult: ...


class JsonlAttemptLog:
    """One JSON object per line."""

    def __init__(self, path: str):
        self.path = Path(path)

    def append(self, record: AttemptRecord) -> WriteResult:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(record.to_dict()) + "\n")
        except OSError as exc:
            return WriteResult.failure(exc)
        return WriteResult.success()


class SqlAttemptLog:
    """Rows in the ``login_attempt_logs`` table."""

    def append(self, record: AttemptRecord) -> WriteResult:
        try:
            db.insert_attempt_log(record.email, record.ip, record.status, record.timestamp)
        except (SQLAlchemyError, RuntimeError) as exc:
            return WriteResult.failure(exc)
        return WriteResult.success()


def safe_append(sink: AttemptLog, record: AttemptRecord) -> WriteResult:
    # sinks outside this module may still raise
    try:
        return sink.append(record)
    except Exception as exc:
        return WriteResult.failure(exc)


def build_attempt_log(cfg) -> AttemptLog:
    if cfg.attempt_log_backend == "db":
        return SqlAttemptLog()
    if cfg.attempt_log_backend == "file":
        return JsonlAttemptLog(cfg.attempts_log_file)
    raise ValueError(f"Unsupported attempt log backend: {cfg.attempt_log_backend}")
