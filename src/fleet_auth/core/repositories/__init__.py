"""Repositories over the document store."""

from .identity_repo import DRIVERS, USERS, DriverRepository, IdentityRepository

__all__ = ["DRIVERS", "USERS", "DriverRepository", "IdentityRepository"]
