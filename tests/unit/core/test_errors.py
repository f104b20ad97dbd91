"""Tests for the identity error hierarchy."""

from src.fleet_auth.core.errors import (
    AccountBlocked,
    AccountDataMissing,
    AuthorizationError,
    ErrorKind,
    IdentityError,
    InputValidationError,
    InvalidCode,
    PartialLinkError,
    PlaceholderNotFound,
    ProviderError,
    RateLimited,
    SessionExpired,
    SessionStateError,
)


def test_categories():
    assert isinstance(InvalidCode(), InputValidationError)
    assert isinstance(RateLimited(), ProviderError)
    assert isinstance(SessionExpired(), SessionStateError)
    assert isinstance(AccountBlocked(), AuthorizationError)
    assert all(
        isinstance(e, IdentityError)
        for e in (InvalidCode(), RateLimited(), SessionExpired(), AccountBlocked())
    )


def test_kind_and_default_message():
    error = SessionExpired()
    assert error.kind is ErrorKind.SESSION_EXPIRED
    assert str(error) == error.user_message


def test_detail_does_not_leak_into_user_message():
    error = PlaceholderNotFound("temp_d1_100")
    assert error.temp_user_id == "temp_d1_100"
    assert "temp_d1_100" in str(error)
    assert "temp_d1_100" not in error.user_message


def test_invalid_code_reports_remaining_attempts():
    error = InvalidCode(attempts_remaining=1)
    assert error.attempts_remaining == 1


def test_authorization_errors_carry_support_contact():
    error = AccountDataMissing("no record", support_contact="+91 9385 722102")
    assert error.kind is ErrorKind.ACCOUNT_DATA_MISSING
    assert error.user_message.endswith("Customer care: +91 9385 722102")
    assert error.support_contact == "+91 9385 722102"
    assert AccountBlocked().user_message == AccountBlocked.user_message


def test_partial_link_keeps_cause():
    cause = RuntimeError("boom")
    error = PartialLinkError("temp_d1_100", "u9", "d1", cause=cause)
    assert error.kind is ErrorKind.PARTIAL_LINK
    assert error.cause is cause
    assert "d1" in str(error)
