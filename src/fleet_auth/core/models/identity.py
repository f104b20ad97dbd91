"""Identity and driver records as persisted in the document store."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from src.fleet_auth.core.errors import MalformedRecord


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


class Role(str, Enum):
    CUSTOMER = "customer"
    DRIVER = "driver"
    ADMIN = "admin"


class AccountStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    BLOCKED = "blocked"


class DriverStatus(str, Enum):
    """Operational status of a driver, set by staff."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"

    def to_account_status(self) -> AccountStatus:
        if self is DriverStatus.SUSPENDED:
            return AccountStatus.BLOCKED
        return AccountStatus(self.value)


class RejectionReason(str, Enum):
    BLOCKED = "blocked"
    INACTIVE = "inactive"
    DATA_MISSING = "data_missing"


class StoredRecord(BaseModel):
    """Base for documents: camelCase on disk, unknown fields preserved."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    id: str = Field(exclude=True, description="Document key")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]):
        """Build a record from a stored document.

        Raises:
            MalformedRecord: the document does not fit the record shape
        """
        try:
            return cls.model_validate({**data, "id": doc_id})
        except ValidationError as e:
            raise MalformedRecord(cls.__name__, doc_id, str(e)) from e

    def to_document(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible document body (without the key)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class VehicleInfo(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    vehicle_type_id: str | None = None
    vehicle_number: str | None = None
    taxi_type_id: str | None = None


class IdentityRecord(StoredRecord):
    """One authenticated principal, keyed by provider subject id.

    Placeholder records share this shape; they are keyed by a synthetic
    ``temp_<driverId>_<timestamp>`` id and carry
    ``pending_phone_verification=True`` until linked.
    """

    first_name: str = ""
    last_name: str = ""
    name: str | None = None
    email: str | None = None
    phone_number: str | None = Field(
        default=None,
        validation_alias=AliasChoices("phoneNumber", "phone", "phone_number"),
        serialization_alias="phoneNumber",
    )
    # Absent on older records; only an explicit False fails gating
    is_verified: bool | None = None
    status: AccountStatus = AccountStatus.ACTIVE
    role: Role | None = None

    # Legacy role flags, read for records written before ``role`` existed
    is_admin: bool | None = None
    is_driver: bool | None = None

    driver_id: str | None = None
    vehicle_info: VehicleInfo | None = None
    auth_uid: str | None = None
    pending_phone_verification: bool = False

    def derived_role(self) -> Role:
        """Return the explicit role, falling back to the legacy flags."""
        if self.role is not None:
            return self.role
        if self.is_admin:
            return Role.ADMIN
        if self.is_driver:
            return Role.DRIVER
        return Role.CUSTOMER

    @field_validator("status", mode="before")
    @classmethod
    def _driver_status(cls, value: Any) -> Any:
        # Driver statuses copied onto user documents
        if value == DriverStatus.SUSPENDED.value:
            return AccountStatus.BLOCKED
        return value

    def rejection_reason(self) -> RejectionReason | None:
        """Why this record may not hold a session, or None when admissible."""
        if self.status is AccountStatus.BLOCKED:
            return RejectionReason.BLOCKED
        if self.status is AccountStatus.INACTIVE or self.is_verified is False:
            return RejectionReason.INACTIVE
        return None


class DriverRecord(StoredRecord):
    """Staff-managed driver, keyed by an internally generated id."""

    name: str = ""
    email: str | None = None
    phone: str = Field(
        validation_alias=AliasChoices("phone", "phoneNumber"),
        serialization_alias="phone",
    )
    taxi_type_id: str | None = None
    vehicle_type_id: str | None = None
    vehicle_number: str | None = None
    status: DriverStatus = DriverStatus.ACTIVE
    rating: float = 0.0
    rides: int = 0
    earnings: float = 0.0
    joined: str | None = None
    auth_uid: str | None = None
    temp_user_id: str | None = None

    @property
    def is_pending_link(self) -> bool:
        return bool(self.temp_user_id) and not self.auth_uid


class ResolvedIdentity(BaseModel):
    """Outcome of identity resolution for one verified principal."""

    subject_id: str
    phone_number: str
    exists: bool
    is_admin: bool = False
    is_linked_driver: bool = False
    data_missing: bool = False
    identity: IdentityRecord | None = None
    link_inconsistency: str | None = Field(
        default=None, description="Detail of a partial link surfaced during resolution"
    )

    @property
    def role(self) -> Role | None:
        if self.identity is None:
            return None
        return self.identity.derived_role()

    def rejection_reason(self) -> RejectionReason | None:
        if self.data_missing:
            return RejectionReason.DATA_MISSING
        if self.identity is None:
            return None
        return self.identity.rejection_reason()
