"""Core data models."""

from .identity import (
    AccountStatus,
    DriverRecord,
    DriverStatus,
    IdentityRecord,
    RejectionReason,
    ResolvedIdentity,
    Role,
    VehicleInfo,
)
from .verification import SessionHandle, VerificationSession, VerifiedPrincipal

__all__ = [
    "AccountStatus",
    "DriverRecord",
    "DriverStatus",
    "IdentityRecord",
    "RejectionReason",
    "ResolvedIdentity",
    "Role",
    "SessionHandle",
    "VehicleInfo",
    "VerificationSession",
    "VerifiedPrincipal",
]
