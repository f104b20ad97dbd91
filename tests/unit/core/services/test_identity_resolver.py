"""Tests for IdentityResolver."""

import pytest

from src.fleet_auth.core.errors import InvalidPhoneFormat
from src.fleet_auth.core.models.identity import AccountStatus, Role
from src.fleet_auth.core.services.identity_resolver import IdentityResolver
from src.fleet_auth.core.services.link_reconciler import LinkReconciler
from src.fleet_auth.runtime.config.config_data import ConfigData, IdentityConfig
from src.fleet_auth.runtime.context import with_context
from tests.fixtures.dummies import DriverUpdateFailingStore
from tests.utils import seed_identity, seed_pending_driver


class TestCustomerResolution:
    @pytest.mark.asyncio
    async def test_unknown_principal_needs_registration(self, resolver, store, customer_phone):
        resolved = await resolver.resolve("c1", customer_phone)

        assert resolved.exists is False
        assert resolved.is_admin is False
        assert resolved.is_linked_driver is False
        assert resolved.data_missing is False
        assert resolved.identity is None
        assert await store.list_documents("users") == []

    @pytest.mark.asyncio
    async def test_existing_customer(self, resolver, store, customer_phone):
        await seed_identity(store, "c1", phone_number=customer_phone, role=Role.CUSTOMER)

        resolved = await resolver.resolve("c1", customer_phone)

        assert resolved.exists is True
        assert resolved.role is Role.CUSTOMER
        assert resolved.identity.first_name == "Sara"
        assert resolved.rejection_reason() is None

    @pytest.mark.asyncio
    async def test_rejects_non_e164_phone(self, resolver):
        with pytest.raises(InvalidPhoneFormat):
            await resolver.resolve("c1", "0559876543")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,verified",
        [(AccountStatus.BLOCKED, True), (AccountStatus.INACTIVE, True), (AccountStatus.ACTIVE, False)],
    )
    async def test_gating_information_is_reported(
        self, resolver, store, customer_phone, status, verified
    ):
        await seed_identity(
            store, "c1", phone_number=customer_phone, status=status, is_verified=verified
        )

        resolved = await resolver.resolve("c1", customer_phone)

        assert resolved.exists is True
        assert resolved.rejection_reason() is not None


class TestRoleFallback:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "flags,expected",
        [
            ({"isAdmin": True}, Role.ADMIN),
            ({"isDriver": True}, Role.DRIVER),
            ({"isDriver": True, "isAdmin": False}, Role.DRIVER),
            ({}, Role.CUSTOMER),
        ],
    )
    async def test_role_derived_and_backfilled(self, resolver, store, customer_phone, flags, expected):
        await store.set(
            "users",
            "c1",
            {"firstName": "Old", "phoneNumber": customer_phone, "isVerified": True, "status": "active", **flags},
        )

        resolved = await resolver.resolve("c1", customer_phone)

        assert resolved.role is expected
        assert (await store.get("users", "c1"))["role"] == expected.value

    @pytest.mark.asyncio
    async def test_fallback_is_deterministic(self, resolver, store, customer_phone):
        await store.set("users", "c1", {"phoneNumber": customer_phone, "isAdmin": True, "isDriver": True})

        roles = {(await resolver.resolve("c1", customer_phone)).role for _ in range(3)}
        assert roles == {Role.ADMIN}


class TestAdminResolution:
    @pytest.mark.asyncio
    async def test_first_admin_login_synthesizes_record(self, resolver, store, admin_phone):
        """Admin number verifying with no record gets a fixed admin record."""
        resolved = await resolver.resolve("a1", admin_phone)

        assert resolved.exists is True
        assert resolved.is_admin is True
        assert resolved.role is Role.ADMIN
        stored = await store.get("users", "a1")
        assert stored["role"] == "admin"
        assert stored["status"] == "active"
        assert stored["isVerified"] is True
        assert stored["isAdmin"] is True
        assert stored["firstName"] == "Admin"
        assert stored["lastName"] == "JezX"
        assert stored["email"] == "admin@jezx.in"
        assert stored["phoneNumber"] == admin_phone

    @pytest.mark.asyncio
    async def test_admin_record_not_duplicated(self, resolver, store, admin_phone):
        await resolver.resolve("a1", admin_phone)
        await resolver.resolve("a1", admin_phone)

        assert [doc_id for doc_id, _ in await store.list_documents("users")] == ["a1"]

    @pytest.mark.asyncio
    async def test_existing_record_promoted(self, resolver, store, admin_phone):
        await seed_identity(store, "a1", phone_number=admin_phone, role=Role.CUSTOMER)

        resolved = await resolver.resolve("a1", admin_phone)

        assert resolved.is_admin is True
        assert resolved.role is Role.ADMIN
        assert (await store.get("users", "a1"))["role"] == "admin"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [AccountStatus.INACTIVE, AccountStatus.BLOCKED])
    async def test_admin_phone_reactivates_record(self, resolver, store, admin_phone, status):
        await seed_identity(
            store, "a1", phone_number=admin_phone, status=status, is_verified=False, first_name="Old"
        )

        resolved = await resolver.resolve("a1", admin_phone)

        assert resolved.is_admin is True
        assert resolved.rejection_reason() is None
        stored = await store.get("users", "a1")
        assert stored["status"] == "active"
        assert stored["isVerified"] is True
        assert stored["isAdmin"] is True
        assert stored["firstName"] == "Admin"
        assert stored["email"] == "admin@jezx.in"

    @pytest.mark.asyncio
    async def test_admin_refresh_keeps_unknown_fields(self, resolver, store, admin_phone):
        await seed_identity(store, "a1", phone_number=admin_phone, status=AccountStatus.INACTIVE)
        await store.update("users", "a1", {"lastLoginDevice": "android"})

        await resolver.resolve("a1", admin_phone)

        assert (await store.get("users", "a1"))["lastLoginDevice"] == "android"

    @pytest.mark.asyncio
    async def test_admin_overrides_pending_driver(self, resolver, store, admin_phone):
        """An admin number that is also a pending driver is never linked."""
        await seed_pending_driver(store, phone=admin_phone)

        resolved = await resolver.resolve("a1", admin_phone)

        assert resolved.is_admin is True
        assert resolved.role is Role.ADMIN
        assert await store.get("users", "temp_d1_100") is not None
        assert (await store.get("drivers", "d1"))["tempUserId"] == "temp_d1_100"

    @pytest.mark.asyncio
    async def test_admin_numbers_from_config(self, resolver, store, customer_phone):
        config = ConfigData(identity=IdentityConfig(admin_phone_numbers=[customer_phone]))
        with with_context(config):
            resolved = await resolver.resolve("c1", customer_phone)

        assert resolved.is_admin is True
        assert (await store.get("users", "c1"))["role"] == "admin"


class TestDriverResolution:
    @pytest.mark.asyncio
    async def test_first_driver_login_links_placeholder(self, resolver, store, driver_phone):
        """Pending driver verifying as u9 ends up linked."""
        await seed_pending_driver(store, phone=driver_phone)

        resolved = await resolver.resolve("u9", driver_phone)

        assert resolved.exists is True
        assert resolved.is_linked_driver is True
        assert resolved.role is Role.DRIVER
        assert resolved.link_inconsistency is None

        identity = await store.get("users", "u9")
        assert identity["authUid"] == "u9"
        assert identity["role"] == "driver"
        assert await store.get("users", "temp_d1_100") is None
        driver = await store.get("drivers", "d1")
        assert driver["authUid"] == "u9"
        assert "tempUserId" not in driver

    @pytest.mark.asyncio
    async def test_linked_driver_subsequent_login(self, resolver, store, driver_phone):
        await seed_pending_driver(store, phone=driver_phone)
        await resolver.resolve("u9", driver_phone)

        resolved = await resolver.resolve("u9", driver_phone)

        assert resolved.exists is True
        assert resolved.is_linked_driver is True
        assert [doc_id for doc_id, _ in await store.list_documents("users")] == ["u9"]

    @pytest.mark.asyncio
    async def test_consumed_placeholder_falls_through(self, resolver, store, driver_phone):
        await seed_pending_driver(store, phone=driver_phone)
        await store.delete("users", "temp_d1_100")

        resolved = await resolver.resolve("u9", driver_phone)

        assert resolved.exists is False
        assert resolved.data_missing is False

    @pytest.mark.asyncio
    async def test_linked_driver_without_record_is_data_missing(self, resolver, store, driver_phone):
        await store.set("drivers", "d1", {"phone": driver_phone, "authUid": "u9"})

        resolved = await resolver.resolve("u9", driver_phone)

        assert resolved.exists is False
        assert resolved.data_missing is True

    @pytest.mark.asyncio
    async def test_partial_link_reported_not_hidden(self, driver_phone):
        store = DriverUpdateFailingStore()
        resolver = IdentityResolver(store, LinkReconciler(store))
        await seed_pending_driver(store, phone=driver_phone)

        resolved = await resolver.resolve("u9", driver_phone)

        assert resolved.exists is True
        assert resolved.link_inconsistency is not None
        assert "d1" in resolved.link_inconsistency


class TestLookup:
    @pytest.mark.asyncio
    async def test_lookup_is_read_only(self, resolver, store, admin_phone, driver_phone):
        await seed_pending_driver(store, phone=driver_phone)

        assert (await resolver.lookup("a1", admin_phone)).exists is False
        assert (await resolver.lookup("u9", driver_phone)).exists is False
        assert await store.get("users", "a1") is None
        assert await store.get("users", "temp_d1_100") is not None

    @pytest.mark.asyncio
    async def test_lookup_existing(self, resolver, store, customer_phone):
        await seed_identity(store, "c1", phone_number=customer_phone)

        resolved = await resolver.lookup("c1")

        assert resolved.exists is True
        assert resolved.phone_number == customer_phone
        assert resolved.role is Role.CUSTOMER
