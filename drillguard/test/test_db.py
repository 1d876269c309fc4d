import pytest
import gc
import json
from datetime import datetime, timedelta, timezone

from drillguard import db
from drillguard.security import get_pepper, hash_token, verify_password


@pytest.fixture
def temp_db(tmp_path):
    """Create a temporary database for testing"""
    path = tmp_path / "test.db"
    db.init_db(str(path))
    yield path
    if db.engine is not None:
        db.engine.dispose()
    gc.collect()


def test_create_user(temp_db):
    """Test creating a user"""
    db.create_user("trainer@lgu.gov.ph", "Trainer", "password123", "bcrypt", "LGU_TRAINER")

    user = db.get_user("trainer@lgu.gov.ph")
    assert user is not None
    assert user.email == "trainer@lgu.gov.ph"
    assert user.role == "LGU_TRAINER"
    assert user.status == "active"
    # Password should be hashed, not plain text
    assert user.password != "password123"
    assert verify_password("password123", get_pepper(), user.password, "bcrypt") == True


def test_get_user_nonexistent(temp_db):
    """Test getting a non-existent user"""
    assert db.get_user("nobody@x.com") is None


def test_argon2_user(temp_db):
    """Test that argon2id users verify and reject correctly"""
    db.create_user("p@x.com", "Participant", "password123", "argon2id")
    user = db.get_user("p@x.com")

    assert verify_password("password123", get_pepper(), user.password, "argon2id") == True
    assert verify_password("wrongpassword", get_pepper(), user.password, "argon2id") == False


def test_set_password(temp_db):
    """Test that set_password replaces the stored hash"""
    db.create_user("p@x.com", "Participant", "password123")

    assert db.set_password("p@x.com", "n3w-Passw0rd!", "bcrypt") == True
    user = db.get_user("p@x.com")
    assert verify_password("n3w-Passw0rd!", get_pepper(), user.password, "bcrypt") == True
    assert verify_password("password123", get_pepper(), user.password, "bcrypt") == False


def test_set_password_unknown_user(temp_db):
    assert db.set_password("ghost@x.com", "whatever123", "bcrypt") == False


def test_recent_attempt_logs_filters_and_orders(temp_db):
    """Test that attempt rows are filtered by email/ip and newest first"""
    base = datetime(2026, 2, 15, 8, 0, tzinfo=timezone.utc)
    db.insert_attempt_log("a@x.com", "1.1.1.1", "failed", base)
    db.insert_attempt_log("a@x.com", "1.1.1.1", "locked", base + timedelta(seconds=1))
    db.insert_attempt_log("b@x.com", "2.2.2.2", "failed", base + timedelta(seconds=2))

    rows = db.recent_attempt_logs(email="a@x.com")
    assert [r.status for r in rows] == ["locked", "failed"]

    rows = db.recent_attempt_logs(ip="2.2.2.2")
    assert [r.email for r in rows] == ["b@x.com"]

    assert len(db.recent_attempt_logs(limit=2)) == 2


def test_reset_token_is_replaced(temp_db):
    """Test that a new reset token replaces the previous one"""
    now = datetime.now(timezone.utc)
    db.replace_reset_token("a@x.com", hash_token("first"), now)
    db.replace_reset_token("a@x.com", hash_token("second"), now)

    stored_hash, created_at = db.get_reset_token("a@x.com")
    assert stored_hash == hash_token("second")
    assert created_at is not None

    db.delete_reset_token("a@x.com")
    assert db.get_reset_token("a@x.com") is None


def test_long_bcrypt_password(temp_db):
    """Test that bcrypt passwords longer than 72 bytes hash and verify in full"""
    password = "A" * 100
    db.create_user("long@x.com", "Participant", password, "bcrypt")
    user = db.get_user("long@x.com")

    assert verify_password(password, get_pepper(), user.password, "bcrypt") == True
    # differs only past byte 72
    assert verify_password("A" * 99 + "B", get_pepper(), user.password, "bcrypt") == False


def test_configured_pepper_is_used(temp_db, tmp_path, monkeypatch):
    """Test that the pepper from the config file is applied to stored hashes"""
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"pepper": "deployment-secret"}))
    monkeypatch.setenv("DRILLGUARD_CONFIG", str(path))
    monkeypatch.delenv("PEPPER", raising=False)

    assert get_pepper() == "deployment-secret"
    db.create_user("p@x.com", "Participant", "password123", "bcrypt")
    user = db.get_user("p@x.com")

    assert verify_password("password123", "deployment-secret", user.password, "bcrypt") == True
    assert verify_password("password123", "pepper", user.password, "bcrypt") == False


def test_pepper_environment_override(monkeypatch):
    monkeypatch.setenv("PEPPER", "from-env")
    assert get_pepper() == "from-env"
