from loguru import logger

from src.fleet_auth.core.errors import (
    AdminPhoneNotAllowed,
    AlreadyRegistered,
    InvalidEmail,
    InvalidName,
)
from src.fleet_auth.core.models.identity import AccountStatus, IdentityRecord, Role
from src.fleet_auth.core.models.verification import VerifiedPrincipal
from src.fleet_auth.core.phone import normalize_phone
from src.fleet_auth.core.repositories.identity_repo import (
    USERS,
    DriverRepository,
    IdentityRepository,
)
from src.fleet_auth.core.security import is_valid_email
from src.fleet_auth.core.services.identity_resolver import is_admin_phone
from src.fleet_auth.core.storage.document_store import DocumentStore, Transaction
from src.fleet_auth.runtime.context import get_config


class RegistrationService:
    """Customer self-registration and identity lookups used by the login screens."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._identities = IdentityRepository(store)
        self._drivers = DriverRepository(store)

    async def register_customer(
        self,
        principal: VerifiedPrincipal,
        first_name: str,
        last_name: str,
        email: str,
    ) -> IdentityRecord:
        """Create the customer record for a verified principal that has none.

        Raises:
            AdminPhoneNotAllowed: the verified number is an admin number
            InvalidName: first or last name is blank
            InvalidEmail: e-mail is malformed
            AlreadyRegistered: a record already exists for the subject
        """
        support = get_config().identity.support_contact
        if is_admin_phone(principal.phone_number):
            raise AdminPhoneNotAllowed(
                "Admin phone used for customer registration", support_contact=support
            )

        first_name = (first_name or "").strip()
        last_name = (last_name or "").strip()
        email = (email or "").strip().lower()
        if not first_name or not last_name:
            raise InvalidName("First and last name are required")
        if not is_valid_email(email):
            raise InvalidEmail(f"Invalid e-mail address: {email!r}")

        record = IdentityRecord(
            id=principal.subject_id,
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone_number=principal.phone_number,
            role=Role.CUSTOMER,
            status=AccountStatus.ACTIVE,
            is_verified=True,
            auth_uid=principal.subject_id,
        )

        async def _create(tx: Transaction) -> None:
            if await tx.get(USERS, record.id) is not None:
                raise AlreadyRegistered(
                    f"Identity record {record.id} already exists", support_contact=support
                )
            tx.set(USERS, record.id, record.to_document())

        await self._store.run_transaction(_create)
        logger.bind(subject=record.id).info("Registered customer")
        return record

    async def is_phone_registered(self, phone: str) -> bool:
        """True when any identity or driver record carries ``phone``."""
        normalized = normalize_phone(phone, get_config().identity.default_country_code)
        if await self._identities.find_by_phone(normalized):
            return True
        return await self._drivers.find_by_phone(normalized) is not None

    async def is_admin(self, subject_id: str) -> bool:
        record = await self._identities.get(subject_id)
        return record is not None and record.derived_role() is Role.ADMIN

    async def get_user_data(self, subject_id: str) -> IdentityRecord | None:
        return await self._identities.get(subject_id)
