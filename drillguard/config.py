from dataclasses import dataclass, field
import json
import logging
import os

from drillguard.lockout_policy import LockoutPolicy


def _bool(env_val: str, default: bool) -> bool:
    if env_val is None:
        return default
    return env_val.lower() in {"1", "true", "yes", "on"}


def _int_list(env_val: str) -> list[int]:
    return [int(part) for part in env_val.split(",") if part.strip()]


@dataclass
class Config:
    database_path: str = "drillguard.db"
    attempts_log_file: str = "attempts.log"
    attempt_log_backend: str = "db"
    pepper: str = "pepper"
    default_hash_mode: str = "bcrypt"
    admin_token: str = "change-me"
    log_level: str = "INFO"

    store_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    fail_open_on_store_error: bool = False

    max_attempts: int = 3
    base_lockout_seconds: int = 30
    progressive_enabled: bool = True
    progressive_durations: list[int] = field(default_factory=lambda: [30, 60, 300])
    attempt_counter_ttl_seconds: int = 3600
    escalation_counter_ttl_seconds: int = 86400

    enable_totp: bool = True
    password_reset_ttl_s: int = 3600


# env var -> (attribute, parser)
_ENV_OVERRIDES = {
    "DATABASE_PATH": ("database_path", str),
    "PEPPER": ("pepper", str),
    "ADMIN_TOKEN": ("admin_token", str),
    "ATTEMPT_LOG_BACKEND": ("attempt_log_backend", str),
    "LOG_LEVEL": ("log_level", str),
    "LOCKOUT_STORE": ("store_backend", str),
    "REDIS_URL": ("redis_url", str),
    "MAX_LOGIN_ATTEMPTS": ("max_attempts", int),
    "LOCKOUT_DURATION_SECONDS": ("base_lockout_seconds", int),
    "PROGRESSIVE_LOCKOUT_SECONDS": ("progressive_durations", _int_list),
    "ATTEMPT_COUNTER_TTL_SECONDS": ("attempt_counter_ttl_seconds", int),
    "ESCALATION_COUNTER_TTL_SECONDS": ("escalation_counter_ttl_seconds", int),
}

_BOOL_ENV_OVERRIDES = {
    "ENABLE_PROGRESSIVE_DELAY": "progressive_enabled",
    "FAIL_OPEN_ON_STORE_ERROR": "fail_open_on_store_error",
    "ENABLE_TOTP": "enable_totp",
}


def config_path(environ=None) -> str:
    env = os.environ if environ is None else environ
    return env.get("DRILLGUARD_CONFIG", "config.json")


def load_config(path: str | None = None, environ=None) -> Config:
    """Build a Config from defaults, an optional JSON file, then the environment."""
    env = os.environ if environ is None else environ
    cfg = Config()
    if path and os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        for k, v in data.items():
            if hasattr(cfg, k):
                setattr(cfg, k, v)

    for name, (attr, parse) in _ENV_OVERRIDES.items():
        raw = env.get(name)
        if raw is not None and raw != "":
            setattr(cfg, attr, parse(raw))
    for name, attr in _BOOL_ENV_OVERRIDES.items():
        setattr(cfg, attr, _bool(env.get(name), getattr(cfg, attr)))

    return cfg


def get_lockout_policy(cfg: Config) -> LockoutPolicy:
    """Raises PolicyMisconfiguration if the configured values are unusable."""
    return LockoutPolicy(
        max_attempts=cfg.max_attempts,
        base_lockout_seconds=cfg.base_lockout_seconds,
        progressive_enabled=cfg.progressive_enabled,
        progressive_durations=cfg.progressive_durations,
        attempt_counter_ttl_seconds=cfg.attempt_counter_ttl_seconds,
        escalation_counter_ttl_seconds=cfg.escalation_counter_ttl_seconds,
    )


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"))
        root.addHandler(handler)
    root.setLevel(level.upper())
