"""Tests for the provider session holder."""

import pytest

from src.fleet_auth.core.models.verification import VerifiedPrincipal
from src.fleet_auth.core.services.providers.auth_state import AuthState


class TestAuthState:
    def setup_method(self):
        self.auth_state = AuthState()
        self.events: list[VerifiedPrincipal | None] = []

    async def _record(self, principal):
        self.events.append(principal)

    @pytest.mark.asyncio
    async def test_sign_in_and_out_notify_listeners(self, customer_principal):
        self.auth_state.add_listener(self._record)

        await self.auth_state.sign_in(customer_principal)
        assert self.auth_state.current_principal == customer_principal

        await self.auth_state.sign_out()
        assert self.auth_state.current_principal is None

        assert self.events == [customer_principal, None]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, customer_principal):
        unsubscribe = self.auth_state.add_listener(self._record)
        unsubscribe()
        unsubscribe()

        await self.auth_state.sign_in(customer_principal)

        assert self.events == []

    @pytest.mark.asyncio
    async def test_sign_out_without_session_still_emits(self):
        self.auth_state.add_listener(self._record)

        await self.auth_state.sign_out()

        assert self.events == [None]
