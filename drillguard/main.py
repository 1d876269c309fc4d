import logging
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from drillguard import audit, db
from drillguard.attempt_log import build_attempt_log
from drillguard.config import config_path, configure_logging, get_lockout_policy, load_config
from drillguard.errors import StoreUnavailable
from drillguard.login_attempts import FailedAttempt, LockoutStatus, LoginAttemptTracker
from drillguard.models import (
    AttemptHistoryResponse,
    AttemptLogEntry,
    LoginRequest,
    LoginResponse,
    LoginTotpRequest,
    PasswordForgotRequest,
    PasswordResetRequest,
    RegisterRequest,
    RegisterResponse,
    User,
)
from drillguard.security import HASH_MODES, generate_reset_token, get_pepper, hash_token, token_matches, verify_password
from drillguard.store import build_store
from drillguard.totp import generate_secret, provisioning_uri, verify_totp

logger = logging.getLogger(__name__)

app = FastAPI(title="Disaster Training Portal Auth")

config = load_config(config_path())
tracker = LoginAttemptTracker(build_store(config), get_lockout_policy(config), build_attempt_log(config))

ADMIN_ROLES = {"LGU_ADMIN", "LGU_TRAINER"}
INVALID_CREDENTIALS = "The provided credentials do not match our records."
INVALID_RESET_LINK = "This password reset link is invalid or has expired."


@app.on_event("startup")
def startup():
    configure_logging(config.log_level)
    db.init_db(config.database_path)


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error("Lockout store unavailable, rejecting %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Login is temporarily unavailable. Please try again later."},
    )


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/register", response_model=RegisterResponse)
def register(req: RegisterRequest):
    if db.get_user(req.email):
        raise HTTPException(status_code=400, detail="Email already registered")
    hash_mode = req.hash_mode if req.hash_mode is not None else config.default_hash_mode
    if hash_mode not in HASH_MODES:
        raise HTTPException(status_code=400, detail=f"Unsupported hash mode: {hash_mode}")

    totp_secret = generate_secret() if config.enable_totp else None
    db.create_user(req.email, req.name, req.password, hash_mode, req.role, totp_secret)
    return RegisterResponse(
        result="created",
        totp_uri=provisioning_uri(totp_secret, req.email) if totp_secret else None,
    )


@app.post("/login", response_model=LoginResponse)
def login(req: LoginRequest, request: Request):
    return _handle_login(req, _client_ip(request))


@app.post("/login_totp", response_model=LoginResponse)
def login_totp(req: LoginTotpRequest, request: Request):
    return _handle_login(req, _client_ip(request), True, req.totp_code)


@app.post("/password/forgot")
def password_forgot(req: PasswordForgotRequest):
    user = db.get_user(req.email)
    if not user:
        # same answer for unknown emails
        return {"result": "sent"}

    token = generate_reset_token()
    db.replace_reset_token(user.email, hash_token(token), datetime.now(timezone.utc))
    deliver_reset_link(user, token)
    audit.log_event(
        "Password reset requested",
        user,
        description="User requested password reset via email.",
    )
    return {"result": "sent"}


@app.post("/password/reset")
def password_reset(req: PasswordResetRequest, request: Request):
    if req.password != req.password_confirmation:
        raise HTTPException(status_code=422, detail="The password confirmation does not match.")

    stored = db.get_reset_token(req.email)
    if stored is None or not token_matches(req.token, stored[0]):
        raise HTTPException(status_code=400, detail=INVALID_RESET_LINK)

    created_at = stored[1]
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if datetime.now(timezone.utc) - created_at > timedelta(seconds=config.password_reset_ttl_s):
        db.delete_reset_token(req.email)
        raise HTTPException(status_code=400, detail=INVALID_RESET_LINK)

    user = db.get_user(req.email)
    if user is None:
        raise HTTPException(status_code=400, detail="User not found.")

    db.set_password(user.email, req.password, user.hash_mode)
    db.delete_reset_token(user.email)
    audit.log_event(
        "Password reset completed",
        user,
        description="User successfully reset their password.",
        ip=_client_ip(request),
    )
    _clear_attempts(user.email, _client_ip(request))
    return {"result": "reset"}


@app.get("/admin/login_attempts", response_model=AttemptHistoryResponse)
def admin_login_attempts(
    admin_token: str,
    email: str | None = None,
    ip: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
):
    if admin_token != config.admin_token:
        raise HTTPException(status_code=403, detail="invalid admin token")

    lockout = tracker.is_locked_out(email, ip) if (email or ip) else None
    rows = db.recent_attempt_logs(email=email, ip=ip, limit=limit)
    return AttemptHistoryResponse(
        failed_attempt_count=tracker.failed_attempt_count(email) if email else 0,
        locked_out=lockout is not None,
        retry_after_seconds=lockout.retry_after_seconds if lockout else None,
        entries=[AttemptLogEntry.from_orm_model(row) for row in rows],
    )


def deliver_reset_link(user: User, token: str) -> None:
    # no mail provider configured: log only
    logger.info("Password reset link for %s: /password/reset/%s?email=%s", user.email, token, user.email)


def _client_ip(request: Request) -> str:
    if request.client and request.client.host:
        return request.client.host
    return "0.0.0.0"


def _lockout_error(seconds: int) -> HTTPException:
    return HTTPException(
        status_code=429,
        detail=f"Too many failed login attempts. Please wait {seconds} seconds before trying again.",
        headers={"Retry-After": str(seconds)},
    )


def _check_lockout(email: str, ip: str) -> LockoutStatus | None:
    try:
        return tracker.is_locked_out(email, ip)
    except StoreUnavailable as exc:
        if not config.fail_open_on_store_error:
            raise
        logger.error("Lockout check skipped for %s from %s: %s", email, ip, exc)
        return None


def _record_failure(email: str, ip: str) -> FailedAttempt:
    try:
        return tracker.record_failed_attempt(email, ip)
    except StoreUnavailable as exc:
        if not config.fail_open_on_store_error:
            raise
        logger.error("Failed attempt not counted for %s from %s: %s", email, ip, exc)
        return FailedAttempt()


def _clear_attempts(email: str, ip: str) -> None:
    try:
        tracker.clear_attempts(email, ip)
    except StoreUnavailable as exc:
        if not config.fail_open_on_store_error:
            raise
        logger.error("Attempts not cleared for %s from %s: %s", email, ip, exc)


def _reject_credentials(email: str, ip: str) -> HTTPException:
    result = _record_failure(email, ip)
    if result.locked:
        return _lockout_error(result.retry_after_seconds)
    return HTTPException(status_code=401, detail=INVALID_CREDENTIALS)


def _handle_login(req: LoginRequest, ip: str, totp_required: bool = False, totp: str | None = None):
    lockout = _check_lockout(req.email, ip)
    if lockout:
        raise _lockout_error(lockout.retry_after_seconds)

    user = db.get_user(req.email)
    if not user or not verify_password(req.password, get_pepper(), user.password, user.hash_mode):
        if user and user.role in ADMIN_ROLES:
            audit.log_event(
                "Failed login",
                user,
                status="failed",
                description="Invalid credentials for admin/trainer login.",
                ip=ip,
            )
        raise _reject_credentials(req.email, ip)

    if totp_required and config.enable_totp:
        if not totp:
            raise HTTPException(status_code=401, detail="TOTP code required")
        if not user.totp_secret:
            raise HTTPException(status_code=400, detail="TOTP not configured")
        is_valid, _ = verify_totp(user.totp_secret, totp)
        if not is_valid:
            audit.log_event("Failed login", user, status="failed", failure_reason="invalid TOTP code", ip=ip)
            raise _reject_credentials(req.email, ip)

    _clear_attempts(req.email, ip)

    if user.status == "inactive":
        audit.log_event(
            "Failed login",
            user,
            status="failed",
            description="Inactive account attempted to log in.",
            ip=ip,
        )
        raise HTTPException(status_code=403, detail="Your account has been deactivated. Please contact an administrator.")

    audit.log_event("Logged in", user, description=f"{user.role} logged in.", ip=ip)
    return LoginResponse(result="success", email=user.email, role=user.role)
