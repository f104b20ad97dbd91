"""Staff-side driver account creation."""

import time
from enum import Enum

from loguru import logger
from pydantic import BaseModel, Field

from src.fleet_auth.core.errors import (
    CredentialCreationFailed,
    DriverAlreadyProvisioned,
    DuplicateDriverPhone,
    ProviderUnavailable,
)
from src.fleet_auth.core.models.identity import (
    DriverRecord,
    DriverStatus,
    IdentityRecord,
    Role,
    VehicleInfo,
)
from src.fleet_auth.core.phone import mask_phone, normalize_phone
from src.fleet_auth.core.repositories.identity_repo import (
    DRIVERS,
    USERS,
    DriverRepository,
)
from src.fleet_auth.core.security import generate_temp_password, synthesize_login_email
from src.fleet_auth.core.services.providers.base import (
    AccountAdminClient,
    ProviderCode,
    ProviderFailure,
)
from src.fleet_auth.core.storage.document_store import (
    DocumentStore,
    StoreUnavailable,
    Transaction,
    TransactionConflict,
)
from src.fleet_auth.runtime.context import get_config


class ProvisioningStrategy(str, Enum):
    """How a staff-created driver gets a login."""

    IMMEDIATE_CREDENTIAL = "immediate_credential"
    DEFERRED_PHONE_LINK = "deferred_phone_link"


class DriverProvisioningRequest(BaseModel):
    """Driver details entered by staff."""

    name: str = Field(min_length=1, description="Driver's full name")
    phone: str = Field(description="Phone number, E.164 or national format")
    email: str | None = Field(default=None, description="Contact e-mail")
    taxi_type_id: str | None = Field(default=None)
    vehicle_type_id: str | None = Field(default=None)
    vehicle_number: str | None = Field(default=None)
    status: DriverStatus = Field(default=DriverStatus.ACTIVE)
    joined: str | None = Field(default=None, description="Joining date as entered")


class ProvisioningResult(BaseModel):
    driver_id: str
    strategy: ProvisioningStrategy
    phone_number: str
    subject_id: str | None = Field(default=None, description="Principal created immediately")
    temp_user_id: str | None = Field(default=None, description="Placeholder awaiting linking")
    login_email: str | None = None
    temp_password: str | None = Field(
        default=None, repr=False, description="Shown once to staff; never persisted"
    )
    reset_email_sent: bool = False

    @property
    def record_id(self) -> str:
        """Key of the identity record written: subject id or placeholder id."""
        return self.subject_id or self.temp_user_id


def _split_name(name: str) -> tuple[str, str]:
    parts = name.strip().split(maxsplit=1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


def make_temp_user_id(driver_id: str) -> str:
    return f"temp_{driver_id}_{int(time.time() * 1000)}"


class AccountProvisioner:
    """Creates driver records together with their login identity."""

    def __init__(
        self, store: DocumentStore, admin_client: AccountAdminClient | None = None
    ) -> None:
        self._store = store
        self._drivers = DriverRepository(store)
        self._admin_client = admin_client

    async def provision_driver(
        self,
        driver_id: str,
        request: DriverProvisioningRequest,
        strategy: ProvisioningStrategy = ProvisioningStrategy.DEFERRED_PHONE_LINK,
    ) -> ProvisioningResult:
        """Create driver ``driver_id`` with the given strategy.

        Raises:
            InvalidPhoneFormat: phone cannot be normalized to E.164
            DriverAlreadyProvisioned: ``driver_id`` already exists
            DuplicateDriverPhone: another driver already has this phone
            CredentialCreationFailed: the login could not be created
            ProviderUnavailable: the account provider was unreachable
        """
        phone = normalize_phone(request.phone, get_config().identity.default_country_code)

        if await self._drivers.get(driver_id) is not None:
            raise DriverAlreadyProvisioned(driver_id)
        existing = await self._drivers.find_by_phone(phone)
        if existing is not None:
            raise DuplicateDriverPhone(phone, existing.id)

        if strategy is ProvisioningStrategy.IMMEDIATE_CREDENTIAL:
            return await self._provision_immediate(driver_id, request, phone)
        return await self._provision_deferred(driver_id, request, phone)

    async def _provision_immediate(
        self, driver_id: str, request: DriverProvisioningRequest, phone: str
    ) -> ProvisioningResult:
        cfg = get_config().provisioning
        password = generate_temp_password(cfg.temp_password_length)
        subject_id, email = await self._create_principal(request.name, password)

        identity = self._identity_from_request(subject_id, driver_id, request, phone)
        identity.email = email
        identity.auth_uid = subject_id
        driver = self._driver_from_request(driver_id, request, phone)
        driver.email = email
        driver.auth_uid = subject_id
        try:
            await self._write_records(identity, driver)
        except (DriverAlreadyProvisioned, StoreUnavailable, TransactionConflict):
            # The provider login exists with no records pointing at it
            logger.bind(subject=subject_id).error(
                f"Login {email} created but records for driver {driver_id} were not written"
            )
            raise

        reset_sent = True
        try:
            await self._admin_client.send_password_reset(email)
        except ProviderFailure as e:
            reset_sent = False
            logger.warning(f"Password reset e-mail to {email} not sent: {e}")

        logger.bind(subject=subject_id).info(
            f"Provisioned driver {driver_id} with login {email}"
        )
        return ProvisioningResult(
            driver_id=driver_id,
            strategy=ProvisioningStrategy.IMMEDIATE_CREDENTIAL,
            phone_number=phone,
            subject_id=subject_id,
            login_email=email,
            temp_password=password,
            reset_email_sent=reset_sent,
        )

    async def _provision_deferred(
        self, driver_id: str, request: DriverProvisioningRequest, phone: str
    ) -> ProvisioningResult:
        temp_user_id = make_temp_user_id(driver_id)

        placeholder = self._identity_from_request(temp_user_id, driver_id, request, phone)
        placeholder.pending_phone_verification = True
        driver = self._driver_from_request(driver_id, request, phone)
        driver.temp_user_id = temp_user_id
        await self._write_records(placeholder, driver)

        logger.info(
            f"Provisioned driver {driver_id} pending verification of {mask_phone(phone)}"
        )
        return ProvisioningResult(
            driver_id=driver_id,
            strategy=ProvisioningStrategy.DEFERRED_PHONE_LINK,
            phone_number=phone,
            temp_user_id=temp_user_id,
        )

    async def _create_principal(self, name: str, password: str) -> tuple[str, str]:
        """Create the login, retrying once with a timestamped e-mail on collision."""
        if self._admin_client is None:
            raise CredentialCreationFailed("No account admin client configured")

        domain = get_config().provisioning.login_email_domain
        for unique in (False, True):
            email = synthesize_login_email(name, domain, unique=unique)
            try:
                subject_id = await self._admin_client.create_principal(email, password, name)
                return subject_id, email
            except ProviderFailure as e:
                if e.code is ProviderCode.EMAIL_EXISTS and not unique:
                    logger.info(f"Login e-mail {email} taken, adding a timestamp")
                    continue
                if e.code is ProviderCode.NETWORK:
                    raise ProviderUnavailable(str(e)) from e
                raise CredentialCreationFailed(str(e)) from e
        raise CredentialCreationFailed(f"Could not find a free login e-mail for {name!r}")

    async def _write_records(self, identity: IdentityRecord, driver: DriverRecord) -> None:
        async def _write(tx: Transaction) -> None:
            if await tx.get(DRIVERS, driver.id) is not None:
                raise DriverAlreadyProvisioned(driver.id)
            tx.set(USERS, identity.id, identity.to_document())
            tx.set(DRIVERS, driver.id, driver.to_document())

        await self._store.run_transaction(_write)

    @staticmethod
    def _identity_from_request(
        record_id: str, driver_id: str, request: DriverProvisioningRequest, phone: str
    ) -> IdentityRecord:
        first_name, last_name = _split_name(request.name)
        return IdentityRecord(
            id=record_id,
            first_name=first_name,
            last_name=last_name,
            name=request.name.strip(),
            email=request.email,
            phone_number=phone,
            role=Role.DRIVER,
            is_driver=True,
            is_verified=True,
            status=request.status.to_account_status(),
            driver_id=driver_id,
            vehicle_info=VehicleInfo(
                vehicle_type_id=request.vehicle_type_id,
                vehicle_number=request.vehicle_number,
                taxi_type_id=request.taxi_type_id,
            ),
        )

    @staticmethod
    def _driver_from_request(
        driver_id: str, request: DriverProvisioningRequest, phone: str
    ) -> DriverRecord:
        return DriverRecord(
            id=driver_id,
            name=request.name.strip(),
            email=request.email,
            phone=phone,
            taxi_type_id=request.taxi_type_id,
            vehicle_type_id=request.vehicle_type_id,
            vehicle_number=request.vehicle_number,
            status=request.status,
            joined=request.joined,
        )
