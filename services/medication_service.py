"""
Medication Service
Business logic for a tenant's medicine list
"""

import logging
import uuid
from typing import Dict, List, Optional, Any, Union

from config import DocumentKeys
from exceptions import NotFoundError, ValidationError
from models import FrequencyTag
from actions.activity_log import ActivityLog, ActivityEventType
from actions.inventory_ledger import InventoryLedger
from tools.document_store import DocumentStore, TenantLocks
from tools.scheduler import Clock


logger = logging.getLogger(__name__)

TRACKED_FIELDS = ("name", "dosage", "frequency", "inventory", "target_id")


def parse_frequency(value: Union[str, List[str], None]) -> List[str]:
    """
    Normalize a frequency value into an ordered, de-duplicated tag list.

    Accepts a list of tags or a comma-separated string such as
    "before_breakfast, after_dinner".
    """
    if isinstance(value, str):
        tags = [part.strip() for part in value.split(",")]
    elif isinstance(value, (list, tuple)):
        tags = [str(part).strip() for part in value]
    else:
        raise ValidationError("frequency must be a list or comma-separated string", field="frequency")

    known = {tag.value for tag in FrequencyTag}
    result: List[str] = []
    for tag in tags:
        if not tag:
            continue
        if tag not in known:
            raise ValidationError(f"unknown frequency tag '{tag}'", field="frequency")
        if tag not in result:
            result.append(tag)

    if not result:
        raise ValidationError("at least one frequency tag is required", field="frequency")
    return result


def _require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must not be empty", field=field)
    return value.strip()


def _require_inventory(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("inventory must be an integer", field="inventory")
    if value < 0:
        raise ValidationError("inventory must not be negative", field="inventory")
    return value


class MedicationService:
    """
    Service for medicine CRUD within a tenant.

    Adding or removing a medicine does not regenerate schedules; slots for a
    deleted medicine stay orphaned until the next regeneration.
    """

    def __init__(
        self,
        store: DocumentStore,
        activity_log: ActivityLog,
        ledger: InventoryLedger,
        clock: Clock,
        locks: Optional[TenantLocks] = None
    ):
        self.store = store
        self.activity_log = activity_log
        self.ledger = ledger
        self.clock = clock
        self.tenant_lock = locks or TenantLocks()

    def add_medicine(
        self,
        tenant_id: str,
        name: str,
        dosage: str,
        frequency: Union[str, List[str]],
        inventory: int,
        target_id: str,
        added_by: str
    ) -> Dict[str, Any]:
        """
        Add a medicine for a target

        Args:
            tenant_id: Tenant (server) the medicine belongs to
            name: Medicine name
            dosage: Free-text dosage, e.g. "500mg"
            frequency: Tags as a list or comma-separated string
            inventory: Current dose count
            target_id: User who takes the medicine
            added_by: User recording the medicine

        Returns:
            The stored medicine record
        """
        now = self.clock.now().isoformat()
        medicine = {
            "id": f"med_{uuid.uuid4().hex[:12]}",
            "name": _require_text(name, "name"),
            "dosage": _require_text(dosage, "dosage"),
            "frequency": parse_frequency(frequency),
            "inventory": _require_inventory(inventory),
            "target_id": _require_text(target_id, "target_id"),
            "created_at": now,
            "updated_at": now,
            "added_by": added_by,
        }

        with self.tenant_lock(tenant_id):
            document = self.store.read(tenant_id, DocumentKeys.MEDICINES)
            document.setdefault("medicines", []).append(medicine)
            self.store.write_or_raise(tenant_id, DocumentKeys.MEDICINES, document)

            self.activity_log.record_event(
                tenant_id,
                ActivityEventType.MEDICINE_ADDED,
                medicine_id=medicine["id"],
                target_id=medicine["target_id"],
                actor=added_by,
                message=f"Added medicine {medicine['name']} ({medicine['dosage']})",
                frequency=medicine["frequency"],
                inventory=medicine["inventory"],
            )

        logger.info(f"Added medicine {medicine['name']} for {medicine['target_id']} in tenant {tenant_id}")
        return medicine

    def get_medicine(self, tenant_id: str, medicine_id: str) -> Dict[str, Any]:
        """Get a medicine by id"""
        for medicine in self.store.read(tenant_id, DocumentKeys.MEDICINES).get("medicines", []):
            if medicine.get("id") == medicine_id:
                return medicine
        raise NotFoundError(f"Medicine {medicine_id} not found")

    def list_medicines(self, tenant_id: str, target_id: Optional[str] = None) -> List[Dict[str, Any]]:
        medicines = self.store.read(tenant_id, DocumentKeys.MEDICINES).get("medicines", [])
        if target_id is None:
            return medicines
        return [m for m in medicines if m.get("target_id") == target_id]

    def update_medicine(
        self,
        tenant_id: str,
        medicine_id: str,
        updates: Dict[str, Any],
        updated_by: str
    ) -> Dict[str, Any]:
        """Apply field updates and log what changed"""
        cleaned: Dict[str, Any] = {}
        for field, value in updates.items():
            if value is None:
                continue
            if field in ("name", "dosage", "target_id"):
                cleaned[field] = _require_text(value, field)
            elif field == "frequency":
                cleaned[field] = parse_frequency(value)
            elif field == "inventory":
                cleaned[field] = _require_inventory(value)
            else:
                raise ValidationError(f"'{field}' cannot be updated", field=field)

        with self.tenant_lock(tenant_id):
            document = self.store.read(tenant_id, DocumentKeys.MEDICINES)
            medicine = next(
                (m for m in document.get("medicines", []) if m.get("id") == medicine_id),
                None,
            )
            if medicine is None:
                raise NotFoundError(f"Medicine {medicine_id} not found")

            changes = self._changes(medicine, cleaned)
            if not changes:
                return medicine

            medicine.update(cleaned)
            medicine["updated_at"] = self.clock.now().isoformat()
            medicine["updated_by"] = updated_by
            self.store.write_or_raise(tenant_id, DocumentKeys.MEDICINES, document)

            self.activity_log.record_event(
                tenant_id,
                ActivityEventType.MEDICINE_UPDATED,
                medicine_id=medicine_id,
                target_id=medicine.get("target_id"),
                actor=updated_by,
                message=f"Updated medicine {medicine.get('name')}",
                changes=changes,
            )

        logger.info(f"Updated medicine {medicine_id} in tenant {tenant_id}: {sorted(changes)}")
        return medicine

    @staticmethod
    def _changes(old: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
        """Field-level diff over the tracked fields"""
        return {
            field: {"from": old.get(field), "to": new[field]}
            for field in TRACKED_FIELDS
            if field in new and old.get(field) != new[field]
        }

    def delete_medicine(self, tenant_id: str, medicine_id: str, deleted_by: str) -> Dict[str, Any]:
        """Remove a medicine; its schedule slots are left in place"""
        with self.tenant_lock(tenant_id):
            document = self.store.read(tenant_id, DocumentKeys.MEDICINES)
            medicines = document.get("medicines", [])
            medicine = next((m for m in medicines if m.get("id") == medicine_id), None)
            if medicine is None:
                raise NotFoundError(f"Medicine {medicine_id} not found")

            document["medicines"] = [m for m in medicines if m.get("id") != medicine_id]
            self.store.write_or_raise(tenant_id, DocumentKeys.MEDICINES, document)

            self.activity_log.record_event(
                tenant_id,
                ActivityEventType.MEDICINE_DELETED,
                medicine_id=medicine_id,
                target_id=medicine.get("target_id"),
                actor=deleted_by,
                message=f"Deleted medicine {medicine.get('name')}",
            )

        logger.info(f"Deleted medicine {medicine_id} from tenant {tenant_id}")
        return medicine

    def restock_medicine(self, tenant_id: str, medicine_id: str, amount: int, actor: str) -> int:
        with self.tenant_lock(tenant_id):
            return self.ledger.restock(tenant_id, medicine_id, amount, actor=actor)
