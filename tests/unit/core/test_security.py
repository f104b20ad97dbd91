"""Tests for credential and code helpers."""

import pytest

from src.fleet_auth.core.security import (
    generate_session_id,
    generate_temp_password,
    is_valid_code,
    is_valid_email,
    login_email_local_part,
    synthesize_login_email,
)


class TestTempPassword:
    def test_default_length_and_character_classes(self):
        for _ in range(50):
            password = generate_temp_password()
            assert len(password) == 8
            assert password.isalnum()
            assert any(c.isupper() for c in password)
            assert any(c.islower() for c in password)
            assert any(c.isdigit() for c in password)

    def test_passwords_differ(self):
        assert len({generate_temp_password() for _ in range(20)}) > 1

    def test_minimum_length_enforced(self):
        assert len(generate_temp_password(3)) == 3
        with pytest.raises(ValueError):
            generate_temp_password(2)


class TestLoginEmail:
    def test_local_part_from_name(self):
        assert login_email_local_part("Ali  Khan") == "ali.khan"
        assert login_email_local_part("  O'Brien ") == "obrien"
        assert login_email_local_part("!!!") == "driver"

    def test_synthesized_email(self):
        assert synthesize_login_email("Ali Khan", "booba-rides.com") == "ali.khan@booba-rides.com"

    def test_unique_suffix(self):
        email = synthesize_login_email("Ali Khan", "booba-rides.com", unique=True)
        local, domain = email.split("@")
        assert domain == "booba-rides.com"
        assert local.startswith("ali.khan.")
        assert local.rsplit(".", 1)[1].isdigit()


class TestValidators:
    def test_codes(self):
        assert is_valid_code("123456")
        assert not is_valid_code("12345")
        assert not is_valid_code("12a456")
        assert not is_valid_code(None)
        assert is_valid_code("1234", length=4)

    def test_emails(self):
        assert is_valid_email("sara@example.com")
        assert not is_valid_email("sara@example")
        assert not is_valid_email("sara example.com")
        assert not is_valid_email(None)


def test_session_ids_are_unique():
    assert generate_session_id() != generate_session_id()
