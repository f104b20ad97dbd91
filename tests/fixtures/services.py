"""Service fixtures for testing."""

import pytest

from src.fleet_auth.core.services import (
    AccountProvisioner,
    IdentityResolver,
    LinkReconciler,
    PhoneLoginFlow,
    RegistrationService,
    SessionGuard,
    VerificationSessionManager,
)
from src.fleet_auth.core.services.providers.auth_state import AuthState
from src.fleet_auth.core.storage.document_store import InMemoryDocumentStore
from tests.fixtures.dummies import (
    FakeAccountAdminClient,
    FakeBotCheck,
    FakeVerificationProvider,
)


@pytest.fixture
def fake_provider() -> FakeVerificationProvider:
    return FakeVerificationProvider()


@pytest.fixture
def fake_bot_check() -> FakeBotCheck:
    return FakeBotCheck()


@pytest.fixture
def fake_admin_client() -> FakeAccountAdminClient:
    return FakeAccountAdminClient()


@pytest.fixture
def session_manager(
    fake_provider: FakeVerificationProvider, fake_bot_check: FakeBotCheck
) -> VerificationSessionManager:
    return VerificationSessionManager(fake_provider, fake_bot_check)


@pytest.fixture
def reconciler(store: InMemoryDocumentStore) -> LinkReconciler:
    return LinkReconciler(store)


@pytest.fixture
def resolver(store: InMemoryDocumentStore, reconciler: LinkReconciler) -> IdentityResolver:
    return IdentityResolver(store, reconciler)


@pytest.fixture
def provisioner(
    store: InMemoryDocumentStore, fake_admin_client: FakeAccountAdminClient
) -> AccountProvisioner:
    return AccountProvisioner(store, fake_admin_client)


@pytest.fixture
def registration(store: InMemoryDocumentStore) -> RegistrationService:
    return RegistrationService(store)


@pytest.fixture
def auth_state() -> AuthState:
    return AuthState()


@pytest.fixture
def guard(resolver: IdentityResolver, auth_state: AuthState) -> SessionGuard:
    """Session guard subscribed to ``auth_state``."""
    guard = SessionGuard(resolver, auth_state)
    guard.attach()
    yield guard
    guard.close()


@pytest.fixture
def login_flow(
    session_manager: VerificationSessionManager,
    auth_state: AuthState,
    guard: SessionGuard,
) -> PhoneLoginFlow:
    return PhoneLoginFlow(session_manager, auth_state, guard)
