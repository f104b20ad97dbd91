from src.fleet_auth.core.models.identity import (
    AccountStatus,
    DriverRecord,
    IdentityRecord,
)
from src.fleet_auth.core.storage.document_store import DocumentStore


async def seed_pending_driver(
    store: DocumentStore,
    phone: str = "+971501234567",
    driver_id: str = "d1",
    temp_user_id: str = "temp_d1_100",
    **placeholder_fields,
) -> tuple[DriverRecord, IdentityRecord]:
    """Write a driver awaiting its first verification plus its placeholder."""
    placeholder = IdentityRecord(
        id=temp_user_id,
        first_name="Ali",
        last_name="Khan",
        name="Ali Khan",
        phone_number=phone,
        is_driver=True,
        is_verified=True,
        status=AccountStatus.ACTIVE,
        driver_id=driver_id,
        pending_phone_verification=True,
        **placeholder_fields,
    )
    driver = DriverRecord(id=driver_id, name="Ali Khan", phone=phone, temp_user_id=temp_user_id)
    await store.set("users", placeholder.id, placeholder.to_document())
    await store.set("drivers", driver.id, driver.to_document())
    return driver, placeholder


async def seed_identity(store: DocumentStore, record_id: str, **fields) -> IdentityRecord:
    fields.setdefault("first_name", "Sara")
    fields.setdefault("last_name", "Ahmed")
    fields.setdefault("is_verified", True)
    record = IdentityRecord(id=record_id, **fields)
    await store.set("users", record.id, record.to_document())
    return record
