"""Process-wide provider session and its sign-in/sign-out events."""

from collections.abc import Awaitable, Callable

from loguru import logger

from src.fleet_auth.core.models.verification import VerifiedPrincipal

AuthListener = Callable[[VerifiedPrincipal | None], Awaitable[None]]


class AuthState:
    """Holds the provider's current principal and notifies listeners on change."""

    def __init__(self) -> None:
        self._principal: VerifiedPrincipal | None = None
        self._listeners: list[AuthListener] = []

    @property
    def current_principal(self) -> VerifiedPrincipal | None:
        return self._principal

    def add_listener(self, listener: AuthListener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def sign_in(self, principal: VerifiedPrincipal) -> None:
        self._principal = principal
        logger.bind(subject=principal.subject_id).info("Provider session started")
        await self._emit(principal)

    async def sign_out(self) -> None:
        previous = self._principal
        self._principal = None
        if previous is not None:
            logger.bind(subject=previous.subject_id).info("Provider session ended")
        await self._emit(None)

    async def _emit(self, principal: VerifiedPrincipal | None) -> None:
        for listener in list(self._listeners):
            await listener(principal)
