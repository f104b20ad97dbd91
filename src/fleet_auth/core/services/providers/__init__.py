"""External provider adapters."""

from .auth_state import AuthListener, AuthState
from .base import (
    AccountAdminClient,
    BotCheck,
    ChallengeConfirmation,
    ProviderCode,
    ProviderFailure,
    StaticBotCheck,
    VerificationProvider,
)
from .identity_toolkit import (
    HttpAccountAdminClient,
    HttpVerificationProvider,
    IdentityToolkitClient,
)

__all__ = [
    "AccountAdminClient",
    "AuthListener",
    "AuthState",
    "BotCheck",
    "ChallengeConfirmation",
    "HttpAccountAdminClient",
    "HttpVerificationProvider",
    "IdentityToolkitClient",
    "ProviderCode",
    "ProviderFailure",
    "StaticBotCheck",
    "VerificationProvider",
]
