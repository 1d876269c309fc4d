import time
import pyotp

ISSUER_NAME = "Disaster Training Portal"


def generate_secret() -> str:
    return pyotp.random_base32()


def provisioning_uri(secret: str, email: str) -> str:
    return pyotp.TOTP(secret).provisioning_uri(name=email, issuer_name=ISSUER_NAME)


def verify_totp(secret: str, code: str, valid_window: int = 1) -> tuple[bool, int | None]:
    """Check ``code`` against the current step and ``valid_window`` steps either side.

    Returns the matching step offset so callers can spot clock drift.
    """
    totp = pyotp.TOTP(secret)
    now = time.time()
    for offset in range(-valid_window, valid_window + 1):
        if totp.verify(code, for_time=now + offset * totp.interval, valid_window=0):
            return True, offset
    return False, None
