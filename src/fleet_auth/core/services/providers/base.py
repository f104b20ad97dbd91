"""Interfaces for the hosted verification and account providers."""

from abc import ABC, abstractmethod
from enum import Enum

from pydantic import BaseModel, Field


class ProviderCode(str, Enum):
    """Failure codes reported by the hosted providers."""

    INVALID_PHONE = "invalid-phone"
    QUOTA_EXCEEDED = "quota-exceeded"
    BOT_CHECK_FAILED = "bot-check-failed"
    NETWORK = "network"
    INVALID_CODE = "invalid-code"
    INVALID_SESSION = "invalid-session"
    CODE_EXPIRED = "code-expired"
    EMAIL_EXISTS = "email-already-in-use"
    UNKNOWN = "unknown"


class ProviderFailure(Exception):
    """Untranslated provider failure; services map it to an IdentityError."""

    def __init__(self, code: ProviderCode, message: str = ""):
        super().__init__(f"{code.value}: {message}" if message else code.value)
        self.code = code
        self.message = message


class ChallengeConfirmation(BaseModel):
    """Provider response to a confirmed one-time code."""

    subject_id: str = Field(description="Provider-assigned subject id")
    id_token: str | None = Field(default=None, description="Provider ID token")
    refresh_token: str | None = Field(default=None, description="Provider refresh token")
    is_new_user: bool = Field(default=False, description="Principal was created by this sign-in")


class BotCheck(ABC):
    """Bot-check mechanism that must be initialized before the first challenge.

    Rendering and mounting the widget belong to the UI layer; this
    interface only exposes the resulting token.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the bot-check; raise ProviderFailure(BOT_CHECK_FAILED) on failure."""
        raise NotImplementedError

    @abstractmethod
    async def token(self) -> str:
        """Return a token proving the bot-check passed."""
        raise NotImplementedError


class StaticBotCheck(BotCheck):
    """Bot-check whose token was obtained by the UI layer and handed in."""

    def __init__(self, token: str | None) -> None:
        self._token = token

    async def initialize(self) -> None:
        if not self._token:
            raise ProviderFailure(ProviderCode.BOT_CHECK_FAILED, "No bot-check token supplied")

    async def token(self) -> str:
        if not self._token:
            raise ProviderFailure(ProviderCode.BOT_CHECK_FAILED, "No bot-check token supplied")
        return self._token


class VerificationProvider(ABC):
    @abstractmethod
    async def issue_challenge(self, phone_number: str, bot_check_token: str) -> str:
        """Deliver a one-time code to ``phone_number``.

        Returns:
            Opaque challenge handle

        Raises:
            ProviderFailure: invalid-phone, quota-exceeded, bot-check-failed or network
        """
        raise NotImplementedError

    @abstractmethod
    async def confirm_challenge(self, challenge: str, code: str) -> ChallengeConfirmation:
        """Exchange a challenge handle and code for the principal's subject id.

        Raises:
            ProviderFailure: invalid-code, invalid-session, code-expired or network
        """
        raise NotImplementedError


class AccountAdminClient(ABC):
    """Staff-side account creation at the authentication provider."""

    @abstractmethod
    async def create_principal(self, email: str, password: str, display_name: str) -> str:
        """Create an e-mail/password principal and return its subject id.

        Raises:
            ProviderFailure: email-already-in-use or network
        """
        raise NotImplementedError

    @abstractmethod
    async def send_password_reset(self, email: str) -> None:
        """Send an out-of-band password reset message to ``email``."""
        raise NotImplementedError
