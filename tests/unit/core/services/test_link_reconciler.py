"""Tests for placeholder linking."""

import asyncio

import pytest

from src.fleet_auth.core.errors import PartialLinkError, PlaceholderNotFound
from src.fleet_auth.core.services.link_reconciler import LinkReconciler
from src.fleet_auth.core.storage.document_store import DELETE_FIELD
from tests.fixtures.dummies import DriverUpdateFailingStore
from tests.utils import seed_pending_driver


class TestLink:
    @pytest.mark.asyncio
    async def test_links_placeholder_to_subject(self, store, reconciler):
        """Scenario: staff-provisioned driver verifies for the first time."""
        await seed_pending_driver(store, vehicle_info={"vehicleNumber": "A 123"})

        result = await reconciler.link("temp_d1_100", "u9")

        assert result == "u9"
        identity = await store.get("users", "u9")
        assert identity["authUid"] == "u9"
        assert identity["pendingPhoneVerification"] is False
        assert identity["phoneNumber"] == "+971501234567"
        assert identity["firstName"] == "Ali"
        assert identity["driverId"] == "d1"
        assert identity["vehicleInfo"] == {"vehicleNumber": "A 123"}
        assert await store.get("users", "temp_d1_100") is None

        driver = await store.get("drivers", "d1")
        assert driver["authUid"] == "u9"
        assert "tempUserId" not in driver

    @pytest.mark.asyncio
    async def test_explicit_driver_id(self, store, reconciler):
        await seed_pending_driver(store)

        await reconciler.link("temp_d1_100", "u9", driver_id="d1")

        assert (await store.get("drivers", "d1"))["authUid"] == "u9"

    @pytest.mark.asyncio
    async def test_driver_found_by_temp_user_id(self, store, reconciler):
        """Placeholders without a driverId still find their driver."""
        await seed_pending_driver(store)
        await store.update("users", "temp_d1_100", {"driverId": DELETE_FIELD})

        await reconciler.link("temp_d1_100", "u9")

        assert (await store.get("drivers", "d1"))["authUid"] == "u9"

    @pytest.mark.asyncio
    async def test_second_link_is_placeholder_not_found(self, store, reconciler):
        await seed_pending_driver(store)
        await reconciler.link("temp_d1_100", "u9")
        before = await store.list_documents("users")

        with pytest.raises(PlaceholderNotFound) as exc:
            await reconciler.link("temp_d1_100", "u9")

        assert exc.value.temp_user_id == "temp_d1_100"
        assert await store.list_documents("users") == before

    @pytest.mark.asyncio
    async def test_missing_placeholder(self, reconciler):
        with pytest.raises(PlaceholderNotFound):
            await reconciler.link("temp_nope_1", "u9")

    @pytest.mark.asyncio
    async def test_concurrent_links_for_same_placeholder(self, store, reconciler):
        """Two racing links: exactly one wins, the other sees PlaceholderNotFound."""
        await seed_pending_driver(store)

        results = await asyncio.gather(
            reconciler.link("temp_d1_100", "u9"),
            reconciler.link("temp_d1_100", "u9"),
            return_exceptions=True,
        )

        successes = [r for r in results if r == "u9"]
        failures = [r for r in results if isinstance(r, PlaceholderNotFound)]
        assert len(successes) == 1
        assert len(failures) == 1

        users = dict(await store.list_documents("users"))
        assert list(users) == ["u9"]
        driver = await store.get("drivers", "d1")
        assert driver["authUid"] == "u9"
        assert "tempUserId" not in driver

    @pytest.mark.asyncio
    async def test_concurrent_links_with_different_subjects(self, store, reconciler):
        """Only one principal can claim a placeholder."""
        await seed_pending_driver(store)

        results = await asyncio.gather(
            reconciler.link("temp_d1_100", "u9"),
            reconciler.link("temp_d1_100", "u10"),
            return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, str)]
        assert len(winners) == 1
        assert sum(isinstance(r, PlaceholderNotFound) for r in results) == 1

        users = dict(await store.list_documents("users"))
        assert list(users) == winners
        assert (await store.get("drivers", "d1"))["authUid"] == winners[0]

    @pytest.mark.asyncio
    async def test_partial_link_is_surfaced(self):
        store = DriverUpdateFailingStore()
        reconciler = LinkReconciler(store)
        await seed_pending_driver(store)

        with pytest.raises(PartialLinkError) as exc:
            await reconciler.link("temp_d1_100", "u9")

        assert exc.value.subject_id == "u9"
        assert exc.value.driver_id == "d1"
        assert exc.value.temp_user_id == "temp_d1_100"
        # Identity moved, driver still points at the placeholder
        assert await store.get("users", "u9") is not None
        assert await store.get("users", "temp_d1_100") is None
        assert (await store.get("drivers", "d1"))["tempUserId"] == "temp_d1_100"

    @pytest.mark.asyncio
    async def test_missing_driver_is_partial_link(self, store, reconciler):
        await seed_pending_driver(store)
        await store.delete("drivers", "d1")

        with pytest.raises(PartialLinkError):
            await reconciler.link("temp_d1_100", "u9")
        assert await store.get("users", "u9") is not None


class TestRepairAndSweep:
    @pytest.mark.asyncio
    async def test_repair_driver_link(self):
        store = DriverUpdateFailingStore()
        await seed_pending_driver(store)
        with pytest.raises(PartialLinkError):
            await LinkReconciler(store).link("temp_d1_100", "u9")

        store.fail_driver_updates = False
        await LinkReconciler(store).repair_driver_link("d1", "u9")

        driver = await store.get("drivers", "d1")
        assert driver["authUid"] == "u9"
        assert "tempUserId" not in driver

    @pytest.mark.asyncio
    async def test_find_orphaned_placeholders(self, store, reconciler):
        await seed_pending_driver(store)
        await seed_pending_driver(
            store, phone="+971501234568", driver_id="d2", temp_user_id="temp_d2_200"
        )
        await seed_pending_driver(
            store, phone="+971501234569", driver_id="d3", temp_user_id="temp_d3_300"
        )
        # d2 was re-provisioned with a new placeholder; d3 was deleted
        await store.update("drivers", "d2", {"tempUserId": "temp_d2_999"})
        await store.delete("drivers", "d3")

        orphans = await reconciler.find_orphaned_placeholders()

        assert sorted(o.id for o in orphans) == ["temp_d2_200", "temp_d3_300"]

    @pytest.mark.asyncio
    async def test_no_orphans_after_link(self, store, reconciler):
        await seed_pending_driver(store)
        await reconciler.link("temp_d1_100", "u9")

        assert await reconciler.find_orphaned_placeholders() == []
