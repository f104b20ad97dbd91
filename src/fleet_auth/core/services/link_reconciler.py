"""Merging staff-created placeholder identities into real ones."""

from loguru import logger

from src.fleet_auth.core.errors import PartialLinkError, PlaceholderNotFound
from src.fleet_auth.core.models.identity import IdentityRecord, utc_now
from src.fleet_auth.core.repositories.identity_repo import (
    USERS,
    DriverRepository,
    IdentityRepository,
)
from src.fleet_auth.core.storage.document_store import (
    DELETE_FIELD,
    DocumentNotFound,
    DocumentStore,
    StoreUnavailable,
    Transaction,
    TransactionConflict,
)


class LinkReconciler:
    """Moves a placeholder identity onto the driver's real subject id."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._identities = IdentityRepository(store)
        self._drivers = DriverRepository(store)

    async def link(
        self, temp_user_id: str, subject_id: str, driver_id: str | None = None
    ) -> str:
        """Link the placeholder at ``temp_user_id`` to ``subject_id``.

        Copying the placeholder to ``subject_id`` and deleting it happen in
        one store transaction, so of two racing links exactly one wins and
        the other sees PlaceholderNotFound. The driver record is updated
        afterwards.

        Args:
            temp_user_id: Key of the placeholder identity record
            subject_id: Provider subject id of the verified driver
            driver_id: Driver record to update; read from the placeholder if omitted

        Returns:
            ``subject_id``

        Raises:
            PlaceholderNotFound: no placeholder at ``temp_user_id``
            PartialLinkError: identity linked but the driver record update failed
        """

        async def _move(tx: Transaction) -> IdentityRecord:
            data = await tx.get(USERS, temp_user_id)
            if data is None:
                raise PlaceholderNotFound(temp_user_id)
            existing = await tx.get(USERS, subject_id)

            placeholder = IdentityRecord.from_document(temp_user_id, data)
            linked = placeholder.model_copy(
                update={
                    "id": subject_id,
                    "auth_uid": subject_id,
                    "pending_phone_verification": False,
                    "updated_at": utc_now(),
                }
            )
            if existing is not None:
                logger.bind(subject=subject_id).warning(
                    f"Replacing existing identity record with placeholder {temp_user_id}"
                )
            tx.set(USERS, subject_id, linked.to_document())
            tx.delete(USERS, temp_user_id)
            return placeholder

        placeholder = await self._store.run_transaction(_move)

        driver_id = driver_id or placeholder.driver_id
        try:
            if driver_id is None:
                driver = await self._drivers.find_by_temp_user_id(temp_user_id)
                if driver is None:
                    raise DocumentNotFound("drivers", f"tempUserId={temp_user_id}")
                driver_id = driver.id
            await self._drivers.update(
                driver_id, {"authUid": subject_id, "tempUserId": DELETE_FIELD}
            )
        except (DocumentNotFound, StoreUnavailable, TransactionConflict) as e:
            error = PartialLinkError(temp_user_id, subject_id, driver_id, cause=e)
            logger.bind(subject=subject_id).error(str(error))
            raise error from e

        logger.bind(subject=subject_id).info(
            f"Linked placeholder {temp_user_id} to driver {driver_id}"
        )
        return subject_id

    async def repair_driver_link(self, driver_id: str, subject_id: str) -> None:
        """Finish a partial link by pointing the driver record at ``subject_id``."""
        await self._drivers.update(
            driver_id, {"authUid": subject_id, "tempUserId": DELETE_FIELD}
        )
        logger.bind(subject=subject_id).info(f"Repaired link for driver {driver_id}")

    async def find_orphaned_placeholders(self) -> list[IdentityRecord]:
        """Placeholders whose driver record no longer points back at them."""
        orphans = []
        for placeholder in await self._identities.list_placeholders():
            driver = None
            if placeholder.driver_id:
                driver = await self._drivers.get(placeholder.driver_id)
            if driver is None or driver.temp_user_id != placeholder.id:
                orphans.append(placeholder)
        if orphans:
            logger.warning(f"Found {len(orphans)} orphaned placeholder record(s)")
        return orphans
