"""Phone login as seen from the login screen."""

from src.fleet_auth.core.models.verification import SessionHandle
from src.fleet_auth.core.phone import normalize_phone
from src.fleet_auth.core.services.providers.auth_state import AuthState
from src.fleet_auth.core.services.session_guard import GuardState, SessionGuard
from src.fleet_auth.core.services.verification_service import VerificationSessionManager
from src.fleet_auth.runtime.context import get_config


class PhoneLoginFlow:
    """Wires verification, the provider session and the session guard together."""

    def __init__(
        self,
        manager: VerificationSessionManager,
        auth_state: AuthState,
        guard: SessionGuard,
    ) -> None:
        self._manager = manager
        self._auth = auth_state
        self._guard = guard

    async def send_code(self, raw_phone: str) -> SessionHandle:
        """Normalize the entered number and send it a one-time code."""
        phone = normalize_phone(raw_phone, get_config().identity.default_country_code)
        return await self._manager.begin_challenge(phone)

    async def resend_code(self, handle: SessionHandle) -> SessionHandle:
        return await self._manager.resend(handle)

    async def verify_code(self, handle: SessionHandle, code: str) -> GuardState:
        """Submit ``code`` and sign in; returns where the guard ended up."""
        principal = await self._manager.submit_code(handle, code)
        await self._auth.sign_in(principal)
        return self._guard.state

    def cancel(self, handle: SessionHandle | None = None) -> None:
        self._manager.abandon(handle)
