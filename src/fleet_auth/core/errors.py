"""Typed errors raised by the identity core.

Every error carries a stable ``kind`` the UI layer can switch on and a
``user_message`` that is safe to show to the person using the app.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Stable identifiers for every error the core can raise."""

    INVALID_PHONE_FORMAT = "InvalidPhoneFormat"
    INVALID_CODE = "InvalidCode"
    INVALID_EMAIL = "InvalidEmail"
    INVALID_NAME = "InvalidName"
    RATE_LIMITED = "RateLimited"
    PROVIDER_UNAVAILABLE = "ProviderUnavailable"
    CHALLENGE_SETUP_FAILED = "ChallengeSetupFailed"
    CREDENTIAL_CREATION_FAILED = "CredentialCreationFailed"
    SESSION_EXPIRED = "SessionExpired"
    TOO_MANY_ATTEMPTS = "TooManyAttempts"
    PLACEHOLDER_NOT_FOUND = "PlaceholderNotFound"
    PARTIAL_LINK = "PartialLinkInconsistency"
    DRIVER_ALREADY_PROVISIONED = "DriverAlreadyProvisioned"
    DUPLICATE_DRIVER_PHONE = "DuplicateDriverPhone"
    MALFORMED_RECORD = "MalformedRecord"
    ACCOUNT_BLOCKED = "AccountBlocked"
    ACCOUNT_INACTIVE = "AccountInactive"
    ACCOUNT_DATA_MISSING = "AccountDataMissing"
    ADMIN_PHONE_NOT_ALLOWED = "AdminPhoneNotAllowed"
    ALREADY_REGISTERED = "AlreadyRegistered"


class IdentityError(Exception):
    """Base class for all identity core errors."""

    kind: ErrorKind
    user_message: str = "Something went wrong. Please try again."

    def __init__(self, detail: str | None = None, *, user_message: str | None = None):
        if user_message is not None:
            self.user_message = user_message
        self.detail = detail
        super().__init__(detail or self.user_message)


# Input validation


class InputValidationError(IdentityError):
    """Caller-correctable input problem; never retried automatically."""


class InvalidPhoneFormat(InputValidationError):
    kind = ErrorKind.INVALID_PHONE_FORMAT
    user_message = "Invalid phone number format."

    def __init__(self, phone: str | None = None):
        super().__init__(f"Not an E.164 phone number: {phone!r}")
        self.phone = phone


class InvalidCode(InputValidationError):
    kind = ErrorKind.INVALID_CODE
    user_message = "Invalid verification code. Please check and try again."

    def __init__(self, detail: str | None = None, *, attempts_remaining: int | None = None):
        super().__init__(detail)
        self.attempts_remaining = attempts_remaining


class InvalidEmail(InputValidationError):
    kind = ErrorKind.INVALID_EMAIL
    user_message = "Please enter a valid email address."


class InvalidName(InputValidationError):
    kind = ErrorKind.INVALID_NAME
    user_message = "Please enter your first and last name."


# Provider


class ProviderError(IdentityError):
    """Failure reported by (or while reaching) an external provider."""


class RateLimited(ProviderError):
    kind = ErrorKind.RATE_LIMITED
    user_message = "Too many attempts. Please try again later."


class ProviderUnavailable(ProviderError):
    kind = ErrorKind.PROVIDER_UNAVAILABLE
    user_message = "Network error. Please check your internet connection and try again."


class ChallengeSetupFailed(ProviderError):
    kind = ErrorKind.CHALLENGE_SETUP_FAILED
    user_message = "reCAPTCHA verification failed. Please try again."


class CredentialCreationFailed(ProviderError):
    kind = ErrorKind.CREDENTIAL_CREATION_FAILED
    user_message = "Could not create the driver login. Please try again."


# Session state


class SessionStateError(IdentityError):
    """The verification session can no longer be used; restart the challenge."""


class SessionExpired(SessionStateError):
    kind = ErrorKind.SESSION_EXPIRED
    user_message = "Verification code has expired. Please request a new one."


class TooManyAttempts(SessionStateError):
    kind = ErrorKind.TOO_MANY_ATTEMPTS
    user_message = "Too many attempts. Please request a new verification code."


# Resolution and linking integrity


class LinkIntegrityError(IdentityError):
    """Problems with placeholder and driver record linkage."""


class PlaceholderNotFound(LinkIntegrityError):
    kind = ErrorKind.PLACEHOLDER_NOT_FOUND

    def __init__(self, temp_user_id: str):
        super().__init__(f"Placeholder record {temp_user_id} not found")
        self.temp_user_id = temp_user_id


class PartialLinkError(LinkIntegrityError):
    """Identity record written but the driver record still points at the placeholder."""

    kind = ErrorKind.PARTIAL_LINK

    def __init__(self, temp_user_id: str, subject_id: str, driver_id: str | None, cause: Exception | None = None):
        super().__init__(
            f"Linked identity {subject_id} from {temp_user_id} but driver "
            f"record {driver_id} was not updated: {cause}"
        )
        self.temp_user_id = temp_user_id
        self.subject_id = subject_id
        self.driver_id = driver_id
        self.cause = cause


class DriverAlreadyProvisioned(LinkIntegrityError):
    kind = ErrorKind.DRIVER_ALREADY_PROVISIONED
    user_message = "This driver already has a login."

    def __init__(self, driver_id: str):
        super().__init__(f"Driver {driver_id} already exists")
        self.driver_id = driver_id


class DuplicateDriverPhone(LinkIntegrityError):
    kind = ErrorKind.DUPLICATE_DRIVER_PHONE
    user_message = "Another driver is already registered with this phone number."

    def __init__(self, phone: str, existing_driver_id: str):
        super().__init__(f"Phone already used by driver {existing_driver_id}")
        self.phone = phone
        self.existing_driver_id = existing_driver_id


class MalformedRecord(LinkIntegrityError):
    """A stored document could not be read as a record."""

    kind = ErrorKind.MALFORMED_RECORD

    def __init__(self, record_type: str, doc_id: str, detail: str):
        super().__init__(f"{record_type} {doc_id} is malformed: {detail}")
        self.record_type = record_type
        self.doc_id = doc_id


# Authorization gating


class AuthorizationError(IdentityError):
    """The principal is known but may not hold a session."""

    def __init__(self, detail: str | None = None, *, support_contact: str | None = None):
        message = self.user_message
        if support_contact:
            message = f"{message} Customer care: {support_contact}"
        super().__init__(detail, user_message=message)
        self.support_contact = support_contact


class AccountBlocked(AuthorizationError):
    kind = ErrorKind.ACCOUNT_BLOCKED
    user_message = "Your account has been blocked. Please contact customer care for further details."


class AccountInactive(AuthorizationError):
    kind = ErrorKind.ACCOUNT_INACTIVE
    user_message = "Your account is inactive. Please contact customer care for assistance."


class AccountDataMissing(AuthorizationError):
    kind = ErrorKind.ACCOUNT_DATA_MISSING
    user_message = "Your account data is not available. Please contact customer care for assistance."


class AdminPhoneNotAllowed(AuthorizationError):
    kind = ErrorKind.ADMIN_PHONE_NOT_ALLOWED
    user_message = "This phone number cannot be used for registration."


class AlreadyRegistered(AuthorizationError):
    kind = ErrorKind.ALREADY_REGISTERED
    user_message = "An account already exists for this phone number. Please log in."
