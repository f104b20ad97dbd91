"""Core services exports."""

# Identity resolution and linking
from .identity_resolver import IdentityResolver
from .link_reconciler import LinkReconciler

# Login screen facade
from .login_flow import PhoneLoginFlow

# Provisioning and registration
from .provisioning_service import (
    AccountProvisioner,
    DriverProvisioningRequest,
    ProvisioningResult,
    ProvisioningStrategy,
)
from .registration_service import RegistrationService

# Session admission
from .session_guard import GuardState, SessionGuard

# Verification
from .verification_service import VerificationSessionManager

__all__ = [
    # Verification
    "VerificationSessionManager",
    # Identity resolution and linking
    "IdentityResolver",
    "LinkReconciler",
    # Provisioning and registration
    "AccountProvisioner",
    "DriverProvisioningRequest",
    "ProvisioningResult",
    "ProvisioningStrategy",
    "RegistrationService",
    # Session admission
    "GuardState",
    "SessionGuard",
    # Login screen facade
    "PhoneLoginFlow",
]
