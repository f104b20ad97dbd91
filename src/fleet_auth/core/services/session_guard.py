"""Admission of provider sessions based on the resolved identity."""

from collections.abc import Callable
from enum import Enum

from loguru import logger

from src.fleet_auth.core.errors import (
    AccountBlocked,
    AccountDataMissing,
    AccountInactive,
    AuthorizationError,
    IdentityError,
)
from src.fleet_auth.core.models.identity import RejectionReason, ResolvedIdentity
from src.fleet_auth.core.models.verification import VerifiedPrincipal
from src.fleet_auth.core.services.identity_resolver import IdentityResolver
from src.fleet_auth.core.services.providers.auth_state import AuthState
from src.fleet_auth.core.storage.document_store import StoreUnavailable
from src.fleet_auth.runtime.context import get_config


class GuardState(str, Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"
    REGISTRATION_REQUIRED = "registration_required"


_REJECTION_ERRORS: dict[RejectionReason, type[AuthorizationError]] = {
    RejectionReason.BLOCKED: AccountBlocked,
    RejectionReason.INACTIVE: AccountInactive,
    RejectionReason.DATA_MISSING: AccountDataMissing,
}


class SessionGuard:
    """Tracks whether the current provider session may be used.

    Sign-in events run full resolution and terminate the provider session
    when the identity fails gating. ``refresh_identity`` re-reads the
    identity without ever touching the provider session.
    """

    def __init__(self, resolver: IdentityResolver, auth_state: AuthState) -> None:
        self._resolver = resolver
        self._auth = auth_state
        self._state = GuardState.LOADING
        self._resolved: ResolvedIdentity | None = None
        self._rejection: RejectionReason | None = None
        self._error: AuthorizationError | None = None
        self._generation = 0
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def state(self) -> GuardState:
        return self._state

    @property
    def identity(self) -> ResolvedIdentity | None:
        return self._resolved

    @property
    def rejection_reason(self) -> RejectionReason | None:
        return self._rejection

    @property
    def error(self) -> AuthorizationError | None:
        """Error describing the rejection, with a message fit for display."""
        return self._error

    def attach(self) -> None:
        """Subscribe to provider sign-in and sign-out events."""
        if self._unsubscribe is None:
            self._unsubscribe = self._auth.add_listener(self.on_auth_state_changed)

    async def start(self) -> GuardState:
        """Subscribe to provider events and evaluate the current session."""
        self.attach()
        await self.on_auth_state_changed(self._auth.current_principal)
        return self._state

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def on_auth_state_changed(self, principal: VerifiedPrincipal | None) -> None:
        self._generation += 1
        generation = self._generation

        if principal is None:
            # Our own forced sign-out must not hide why the session was rejected
            if self._state is not GuardState.REJECTED:
                self._clear(GuardState.UNAUTHENTICATED)
            return

        self._clear(GuardState.LOADING)
        try:
            resolved = await self._resolver.resolve(principal.subject_id, principal.phone_number)
        except StoreUnavailable:
            if generation == self._generation:
                self._clear(GuardState.UNAUTHENTICATED)
            raise
        except IdentityError as e:
            logger.bind(subject=principal.subject_id).warning(f"Identity resolution failed: {e}")
            if generation == self._generation:
                await self._reject(RejectionReason.DATA_MISSING, None, sign_out=True)
            return

        if generation != self._generation:
            logger.debug("Discarding stale identity resolution")
            return

        if resolved.link_inconsistency:
            logger.bind(subject=principal.subject_id).error(
                f"Admitting session with link inconsistency: {resolved.link_inconsistency}"
            )
        await self._apply(resolved, sign_out=True)

    async def refresh_identity(self) -> GuardState:
        """Re-read the identity for the current subject; safe to call repeatedly."""
        principal = self._auth.current_principal
        if principal is None:
            if self._state is not GuardState.REJECTED:
                self._clear(GuardState.UNAUTHENTICATED)
            return self._state

        generation = self._generation
        try:
            resolved = await self._resolver.lookup(principal.subject_id, principal.phone_number)
        except IdentityError as e:
            logger.bind(subject=principal.subject_id).warning(f"Identity refresh failed: {e}")
            if generation == self._generation:
                await self._reject(RejectionReason.DATA_MISSING, None, sign_out=False)
            return self._state
        if generation != self._generation:
            return self._state

        if not resolved.exists and self._state is GuardState.AUTHENTICATED:
            logger.bind(subject=principal.subject_id).info("Identity record deleted")
            self._clear(GuardState.UNAUTHENTICATED)
            return self._state

        await self._apply(resolved, sign_out=False)
        return self._state

    async def logout(self) -> None:
        self._clear(GuardState.UNAUTHENTICATED)
        await self._auth.sign_out()

    async def _apply(self, resolved: ResolvedIdentity, sign_out: bool) -> None:
        reason = resolved.rejection_reason()
        if reason is not None:
            await self._reject(reason, resolved, sign_out=sign_out)
        elif not resolved.exists:
            self._clear(GuardState.REGISTRATION_REQUIRED)
            self._resolved = resolved
        else:
            self._clear(GuardState.AUTHENTICATED)
            self._resolved = resolved
            logger.bind(subject=resolved.subject_id).info(
                f"Session admitted as {resolved.role.value}"
            )

    async def _reject(
        self, reason: RejectionReason, resolved: ResolvedIdentity | None, sign_out: bool
    ) -> None:
        error_cls = _REJECTION_ERRORS[reason]
        self._state = GuardState.REJECTED
        self._resolved = resolved
        self._rejection = reason
        self._error = error_cls(
            f"Session rejected: {reason.value}",
            support_contact=get_config().identity.support_contact,
        )
        subject = resolved.subject_id if resolved else "-"
        logger.bind(subject=subject).warning(f"Session rejected ({reason.value})")
        if sign_out:
            await self._auth.sign_out()

    def _clear(self, state: GuardState) -> None:
        self._state = state
        self._resolved = None
        self._rejection = None
        self._error = None
