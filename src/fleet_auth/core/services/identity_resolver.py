"""Resolution of a verified principal to its identity record."""

from loguru import logger

from src.fleet_auth.core.errors import PartialLinkError, PlaceholderNotFound
from src.fleet_auth.core.models.identity import (
    AccountStatus,
    DriverRecord,
    IdentityRecord,
    ResolvedIdentity,
    Role,
)
from src.fleet_auth.core.phone import mask_phone, require_e164
from src.fleet_auth.core.repositories.identity_repo import (
    DriverRepository,
    IdentityRepository,
)
from src.fleet_auth.core.services.link_reconciler import LinkReconciler
from src.fleet_auth.core.storage.document_store import DocumentStore
from src.fleet_auth.runtime.context import get_config


def is_admin_phone(phone_number: str | None) -> bool:
    return phone_number in get_config().identity.admin_phone_numbers


class IdentityResolver:
    """Maps (subject id, phone) to an identity record, linking or creating as needed."""

    def __init__(self, store: DocumentStore, reconciler: LinkReconciler | None = None) -> None:
        self._identities = IdentityRepository(store)
        self._drivers = DriverRepository(store)
        self._reconciler = reconciler or LinkReconciler(store)

    async def resolve(self, subject_id: str, phone_number: str) -> ResolvedIdentity:
        """Resolve a freshly verified principal.

        Order of checks:
            1. An admin phone number marks the principal as admin and skips
               driver linking entirely.
            2. A driver record for the phone that still carries a
               placeholder id is linked onto ``subject_id``.
            3. The identity record at ``subject_id`` is read; a missing
               record is synthesized for admins and reported as absent
               otherwise.
            4. Records without an explicit role get one derived from the
               legacy flags, and it is written back.

        Raises:
            InvalidPhoneFormat: ``phone_number`` is not E.164
        """
        phone = require_e164(phone_number)
        log = logger.bind(subject=subject_id)
        is_admin = is_admin_phone(phone)
        link_inconsistency = None

        driver = await self._drivers.find_by_phone(phone)
        if driver is not None and driver.temp_user_id:
            if is_admin:
                log.warning(
                    f"Admin phone {mask_phone(phone)} matches pending driver {driver.id}; not linking"
                )
            else:
                link_inconsistency = await self._link_pending_driver(driver, subject_id)

        identity = await self._identities.get(subject_id)
        if identity is None:
            if is_admin:
                identity = await self._create_admin_record(subject_id, phone)
            else:
                data_missing = driver is not None and driver.auth_uid == subject_id
                if data_missing:
                    log.error(f"Driver {driver.id} is linked but has no identity record")
                return ResolvedIdentity(
                    subject_id=subject_id,
                    phone_number=phone,
                    exists=False,
                    data_missing=data_missing,
                    link_inconsistency=link_inconsistency,
                )
        elif is_admin:
            identity = await self._refresh_admin_record(identity, phone)
        elif identity.role is None:
            identity.role = identity.derived_role()
            await self._identities.update(subject_id, {"role": identity.role.value})
            log.debug(f"Backfilled role {identity.role.value}")

        return self._build(subject_id, phone, identity, driver, link_inconsistency)

    async def lookup(self, subject_id: str, phone_number: str | None = None) -> ResolvedIdentity:
        """Read-only resolution: no linking, no admin synthesis, no backfill."""
        identity = await self._identities.get(subject_id)
        phone = phone_number or (identity.phone_number if identity else None) or ""
        if identity is None:
            return ResolvedIdentity(subject_id=subject_id, phone_number=phone, exists=False)
        driver = await self._drivers.find_by_phone(phone) if phone else None
        return self._build(subject_id, phone, identity, driver, None)

    async def _link_pending_driver(self, driver: DriverRecord, subject_id: str) -> str | None:
        try:
            await self._reconciler.link(driver.temp_user_id, subject_id, driver.id)
        except PlaceholderNotFound:
            logger.bind(subject=subject_id).warning(
                f"Placeholder {driver.temp_user_id} for driver {driver.id} already consumed"
            )
        except PartialLinkError as e:
            # Identity record exists; the driver record needs repair
            driver.auth_uid = None
            return str(e)
        else:
            driver.auth_uid = subject_id
            driver.temp_user_id = None
        return None

    @staticmethod
    def _admin_fields(phone: str) -> dict:
        profile = get_config().identity.admin_profile
        return {
            "first_name": profile.first_name,
            "last_name": profile.last_name,
            "name": f"{profile.first_name} {profile.last_name}",
            "email": profile.email,
            "phone_number": phone,
            "role": Role.ADMIN,
            "is_admin": True,
            "status": AccountStatus.ACTIVE,
            "is_verified": True,
        }

    async def _create_admin_record(self, subject_id: str, phone: str) -> IdentityRecord:
        record = IdentityRecord(id=subject_id, auth_uid=subject_id, **self._admin_fields(phone))
        await self._identities.save(record)
        logger.bind(subject=subject_id).info("Created admin identity record")
        return record

    async def _refresh_admin_record(self, identity: IdentityRecord, phone: str) -> IdentityRecord:
        """Rewrite the admin profile and reactivate the record on every admin login."""
        refreshed = identity.model_copy(update=self._admin_fields(phone))
        if refreshed.to_document() != identity.to_document():
            logger.bind(subject=identity.id).info("Refreshing admin record for admin phone")
            await self._identities.save(refreshed)
        return refreshed

    @staticmethod
    def _build(
        subject_id: str,
        phone: str,
        identity: IdentityRecord,
        driver: DriverRecord | None,
        link_inconsistency: str | None,
    ) -> ResolvedIdentity:
        role = identity.derived_role()
        linked_driver = role is Role.DRIVER or (
            driver is not None and driver.auth_uid == subject_id
        )
        return ResolvedIdentity(
            subject_id=subject_id,
            phone_number=phone,
            exists=True,
            is_admin=role is Role.ADMIN or is_admin_phone(phone),
            is_linked_driver=linked_driver,
            identity=identity,
            link_inconsistency=link_inconsistency,
        )
