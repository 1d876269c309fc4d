import pytest
from unittest.mock import patch
from urllib.parse import unquote
import pyotp

from drillguard import totp

BASE_TIME = 1000000.0


class TestTotp:
    """Test suite for TOTP module"""

    def test_generate_secret_returns_base32(self):
        """Test that generate_secret returns a valid base32 string"""
        secret = totp.generate_secret()

        valid_chars = set('ABCDEFGHIJKLMNOPQRSTUVWXYZ234567')
        assert len(secret) >= 16
        assert all(c in valid_chars for c in secret)

    def test_generate_secret_generates_unique_secrets(self):
        """Test that each call to generate_secret generates a unique secret"""
        assert totp.generate_secret() != totp.generate_secret()

    def test_provisioning_uri_names_account_and_issuer(self):
        """Test that the authenticator URI carries the email and portal name"""
        secret = totp.generate_secret()
        uri = unquote(totp.provisioning_uri(secret, "trainer@lgu.gov.ph"))

        assert uri.startswith("otpauth://totp/")
        assert "trainer@lgu.gov.ph" in uri
        assert f"secret={secret}" in uri
        assert "issuer=Disaster Training Portal" in uri

    def test_verify_totp_accepts_current_code(self):
        """Test that the code for the current step verifies with offset 0"""
        secret = totp.generate_secret()
        code = pyotp.TOTP(secret).at(BASE_TIME)

        with patch('drillguard.totp.time.time', return_value=BASE_TIME):
            result, offset = totp.verify_totp(secret, code)

        assert result == True
        assert offset == 0

    def test_verify_totp_returns_false_for_wrong_secret(self):
        """Test that verify_totp returns False when code doesn't match secret"""
        code = pyotp.TOTP(totp.generate_secret()).at(BASE_TIME)

        with patch('drillguard.totp.time.time', return_value=BASE_TIME):
            result, offset = totp.verify_totp(totp.generate_secret(), code)

        assert result == False
        assert offset is None

    @pytest.mark.parametrize("steps", [-1, 1])
    def test_verify_totp_with_valid_window_default(self, steps):
        """Test that verify_totp accepts codes one step either side"""
        secret = totp.generate_secret()
        totp_obj = pyotp.TOTP(secret)
        code_at_base = totp_obj.at(BASE_TIME)

        with patch('drillguard.totp.time.time', return_value=BASE_TIME + steps * totp_obj.interval):
            result, offset = totp.verify_totp(secret, code_at_base)

        assert result == True
        assert offset == -steps

    @pytest.mark.parametrize("steps", [-3, 3])
    def test_verify_totp_rejects_outside_valid_window(self, steps):
        """Test that codes more than one step away are rejected"""
        secret = totp.generate_secret()
        totp_obj = pyotp.TOTP(secret)
        code = totp_obj.at(BASE_TIME + steps * totp_obj.interval)

        with patch('drillguard.totp.time.time', return_value=BASE_TIME):
            result, offset = totp.verify_totp(secret, code, valid_window=1)

        assert result == False
        assert offset is None

    def test_verify_totp_with_zero_valid_window_rejects_adjacent(self):
        """Test that verify_totp with valid_window=0 rejects adjacent time steps"""
        secret = totp.generate_secret()
        totp_obj = pyotp.TOTP(secret)
        code = totp_obj.at(BASE_TIME)

        with patch('drillguard.totp.time.time', return_value=BASE_TIME + totp_obj.interval):
            result, offset = totp.verify_totp(secret, code, valid_window=0)

        assert result == False
        assert offset is None

    @pytest.mark.parametrize("code", ["", "ABCDEF", "12345", "1234567"])
    def test_verify_totp_with_malformed_code(self, code):
        """Test that malformed codes are rejected"""
        result, offset = totp.verify_totp(totp.generate_secret(), code)

        assert result == False
        assert offset is None
