"""
Inventory Ledger
Applies dose-count side effects and raises low-stock alerts
"""

import logging
from typing import Dict, Any, Optional, Tuple

from config import DocumentKeys, engine_config
from exceptions import NotFoundError, ValidationError
from models import AlertKind
from actions.activity_log import ActivityLog, ActivityEventType
from tools.document_store import DocumentStore
from tools.notification_service import Notifier
from tools.scheduler import Clock


logger = logging.getLogger(__name__)


class InventoryLedger:
    """
    Dose counts per medicine, clamped at zero.

    A low-stock alert fires whenever a decrement lands in
    (0, LOW_STOCK_THRESHOLD]; each step down is a separate crossing.
    """

    def __init__(
        self,
        store: DocumentStore,
        activity_log: ActivityLog,
        notifier: Notifier,
        clock: Clock,
        low_stock_threshold: int = engine_config.LOW_STOCK_THRESHOLD
    ):
        self.store = store
        self.activity_log = activity_log
        self.notifier = notifier
        self.clock = clock
        self.low_stock_threshold = low_stock_threshold

    def decrement(
        self,
        tenant_id: str,
        medicine_id: str,
        amount: int = 1,
        actor: Optional[str] = None
    ) -> int:
        """Remove `amount` doses and return the new count"""
        if amount < 0:
            raise ValidationError("amount must not be negative", field="amount")

        old_count, new_count, medicine = self._apply(
            tenant_id, medicine_id, lambda current: max(0, current - amount), actor
        )
        logger.info(f"Inventory for {medicine_id} in tenant {tenant_id}: {old_count} -> {new_count}")

        if 0 < new_count <= self.low_stock_threshold and new_count < old_count:
            self._raise_low_stock(tenant_id, medicine, new_count)

        return new_count

    def restock(
        self,
        tenant_id: str,
        medicine_id: str,
        amount: int,
        actor: Optional[str] = None
    ) -> int:
        """Add `amount` doses and return the new count"""
        if amount <= 0:
            raise ValidationError("amount must be positive", field="amount")

        old_count, new_count, medicine = self._apply(
            tenant_id, medicine_id, lambda current: current + amount, actor
        )
        self.activity_log.record_event(
            tenant_id,
            ActivityEventType.INVENTORY_RESTOCKED,
            medicine_id=medicine_id,
            target_id=medicine.get("target_id"),
            actor=actor,
            message=f"Inventory for {medicine.get('name')} restocked by {amount}",
            remaining_count=new_count,
            previous_count=old_count,
        )
        return new_count

    def count(self, tenant_id: str, medicine_id: str) -> int:
        medicine = self._find(self.store.read(tenant_id, DocumentKeys.MEDICINES), medicine_id)
        return int(medicine.get("inventory") or 0)

    def _apply(self, tenant_id: str, medicine_id: str, change, actor: Optional[str]) -> Tuple[int, int, Dict[str, Any]]:
        document = self.store.read(tenant_id, DocumentKeys.MEDICINES)
        medicine = self._find(document, medicine_id)

        old_count = int(medicine.get("inventory") or 0)
        new_count = change(old_count)
        medicine["inventory"] = new_count
        medicine["updated_at"] = self.clock.now().isoformat()
        if actor:
            medicine["updated_by"] = actor

        self.store.write_or_raise(tenant_id, DocumentKeys.MEDICINES, document)
        return old_count, new_count, medicine

    @staticmethod
    def _find(document: Dict[str, Any], medicine_id: str) -> Dict[str, Any]:
        for medicine in document.get("medicines", []):
            if medicine.get("id") == medicine_id:
                return medicine
        raise NotFoundError(f"Medicine {medicine_id} not found")

    def _raise_low_stock(self, tenant_id: str, medicine: Dict[str, Any], remaining: int) -> None:
        self.activity_log.record_event(
            tenant_id,
            ActivityEventType.INVENTORY_LOW,
            medicine_id=medicine["id"],
            target_id=medicine.get("target_id"),
            message=f"Low inventory alert for {medicine.get('name')}",
            remaining_count=remaining,
        )

        trackers = self.store.read(tenant_id, DocumentKeys.SETTINGS).get("trackers", [])
        try:
            self.notifier.alert_trackers(
                tenant_id,
                medicine["id"],
                medicine.get("target_id"),
                AlertKind.LOW_STOCK.value,
                medicine_name=medicine.get("name"),
                remaining_count=remaining,
                tracker_ids=trackers,
            )
        except Exception as e:
            logger.error(f"Failed to send low inventory alert for {medicine['id']}: {e}")
