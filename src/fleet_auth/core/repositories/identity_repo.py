from typing import Any

from src.fleet_auth.core.models.identity import DriverRecord, IdentityRecord, utc_now
from src.fleet_auth.core.storage.document_store import DocumentStore

USERS = "users"
DRIVERS = "drivers"


class IdentityRepository:
    """Data-access layer for identity records (including placeholders)."""

    collection = USERS

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def get(self, record_id: str) -> IdentityRecord | None:
        data = await self._store.get(self.collection, record_id)
        if data is None:
            return None
        return IdentityRecord.from_document(record_id, data)

    async def exists(self, record_id: str) -> bool:
        return await self._store.get(self.collection, record_id) is not None

    async def save(self, record: IdentityRecord) -> IdentityRecord:
        record.updated_at = utc_now()
        await self._store.set(self.collection, record.id, record.to_document())
        return record

    async def update(self, record_id: str, changes: dict[str, Any]) -> None:
        await self._store.update(
            self.collection, record_id, {**changes, "updatedAt": utc_now().isoformat()}
        )

    async def delete(self, record_id: str) -> None:
        await self._store.delete(self.collection, record_id)

    async def find_by_phone(self, phone: str) -> list[IdentityRecord]:
        rows = await self._store.find_by_field(self.collection, "phoneNumber", phone)
        return [IdentityRecord.from_document(doc_id, data) for doc_id, data in rows]

    async def list_placeholders(self) -> list[IdentityRecord]:
        rows = await self._store.find_by_field(
            self.collection, "pendingPhoneVerification", True
        )
        return [IdentityRecord.from_document(doc_id, data) for doc_id, data in rows]


class DriverRepository:
    """Data-access layer for driver records."""

    collection = DRIVERS

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def get(self, driver_id: str) -> DriverRecord | None:
        data = await self._store.get(self.collection, driver_id)
        if data is None:
            return None
        return DriverRecord.from_document(driver_id, data)

    async def save(self, record: DriverRecord) -> DriverRecord:
        record.updated_at = utc_now()
        await self._store.set(self.collection, record.id, record.to_document())
        return record

    async def update(self, driver_id: str, changes: dict[str, Any]) -> None:
        await self._store.update(
            self.collection, driver_id, {**changes, "updatedAt": utc_now().isoformat()}
        )

    async def find_by_phone(self, phone: str) -> DriverRecord | None:
        """Return the first driver whose phone matches exactly."""
        rows = await self._store.find_by_field(self.collection, "phone", phone)
        if not rows:
            return None
        doc_id, data = sorted(rows, key=lambda row: row[0])[0]
        return DriverRecord.from_document(doc_id, data)

    async def find_by_temp_user_id(self, temp_user_id: str) -> DriverRecord | None:
        rows = await self._store.find_by_field(self.collection, "tempUserId", temp_user_id)
        if not rows:
            return None
        doc_id, data = rows[0]
        return DriverRecord.from_document(doc_id, data)
