import base64
import hashlib
import hmac
import secrets

import bcrypt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from drillguard.config import config_path, load_config


argon2_hasher = PasswordHasher(time_cost=1, memory_cost=65536, parallelism=1, hash_len=32)

HASH_MODES = ("bcrypt", "argon2id")


def _apply_pepper(password: str, pepper: str) -> bytes:
    combo = password + pepper
    return combo.encode()


def _bcrypt_payload(payload: bytes) -> bytes:
    # bcrypt reads at most 72 bytes; a digest keeps long passwords whole
    return base64.b64encode(hashlib.sha256(payload).digest())


def hash_password(password: str, pepper: str, mode: str = "bcrypt") -> str:
    payload = _apply_pepper(password, pepper)
    if mode == "bcrypt":
        return bcrypt.hashpw(_bcrypt_payload(payload), bcrypt.gensalt(rounds=12)).decode()
    if mode == "argon2id":
        return argon2_hasher.hash(payload)
    raise ValueError(f"Unsupported hash mode: {mode}")


def verify_password(password: str, pepper: str, stored_hash: str, mode: str) -> bool:
    payload = _apply_pepper(password, pepper)
    if mode == "bcrypt":
        return bcrypt.checkpw(_bcrypt_payload(payload), stored_hash.encode())
    if mode == "argon2id":
        try:
            return argon2_hasher.verify(stored_hash, payload)
        except (VerificationError, InvalidHashError):
            return False
    raise ValueError(f"Unsupported hash mode: {mode}")


def generate_reset_token() -> str:
    return secrets.token_urlsafe(48)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def token_matches(token: str, stored_hash: str) -> bool:
    return hmac.compare_digest(hash_token(token), stored_hash)


def get_pepper() -> str:
    return load_config(config_path()).pepper
