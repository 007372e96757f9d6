"""
Notification Service Tool
Delivers reminders and tracker alerts to the chat platform
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from config import Settings


logger = logging.getLogger(__name__)


@dataclass
class DeliveryHandle:
    """Reference to a delivered reminder, used to mark it expired later"""
    message_id: str
    tenant_id: str
    reminder_key: str
    delivered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message_id": self.message_id,
            "tenant_id": self.tenant_id,
            "reminder_key": self.reminder_key,
            "delivered_at": self.delivered_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeliveryHandle":
        return cls(
            message_id=data["message_id"],
            tenant_id=data["tenant_id"],
            reminder_key=data["reminder_key"],
            delivered_at=datetime.fromisoformat(data["delivered_at"]),
        )


class Notifier(ABC):
    """Outbound notifications; every call may fail and callers decide how to react"""

    @abstractmethod
    def send_reminder(
        self,
        tenant_id: str,
        target_id: str,
        medicine_id: str,
        reminder_key: str,
        **context: Any
    ) -> Optional[DeliveryHandle]:
        """Deliver a reminder with taken/missed/snooze actions bound to reminder_key"""

    @abstractmethod
    def mark_expired(self, handle: DeliveryHandle) -> None:
        """Show a delivered reminder as expired and remove its actions"""

    @abstractmethod
    def alert_trackers(
        self,
        tenant_id: str,
        medicine_id: str,
        target_id: str,
        kind: str,
        **context: Any
    ) -> None:
        """Fire-and-forget alert to all trackers of the tenant"""

    @abstractmethod
    def send_daily_summary(self, tenant_id: str, summary: Dict[str, Any]) -> None:
        """Post the daily taken/missed summary"""


class LoggingNotifier(Notifier):
    """Writes every notification to the log; the default when no channel is configured"""

    def send_reminder(self, tenant_id, target_id, medicine_id, reminder_key, **context):
        handle = DeliveryHandle(
            message_id=str(uuid.uuid4())[:8],
            tenant_id=tenant_id,
            reminder_key=reminder_key,
        )
        logger.info(
            f"[REMINDER] tenant={tenant_id} target={target_id} medicine={medicine_id} "
            f"key={reminder_key} {context.get('medicine_name', '')}"
        )
        return handle

    def mark_expired(self, handle):
        logger.info(f"[EXPIRED] tenant={handle.tenant_id} message={handle.message_id}")

    def alert_trackers(self, tenant_id, medicine_id, target_id, kind, **context):
        trackers = context.get("tracker_ids") or []
        logger.info(
            f"[TRACKER ALERT] tenant={tenant_id} kind={kind} medicine={medicine_id} "
            f"target={target_id} trackers={len(trackers)}"
        )

    def send_daily_summary(self, tenant_id, summary):
        logger.info(
            f"[DAILY SUMMARY] tenant={tenant_id} taken={summary.get('taken')} "
            f"missed={summary.get('missed')} compliance={summary.get('compliance')}"
        )


class WebhookNotifier(Notifier):
    """Posts JSON events to the chat-platform bridge"""

    def __init__(self, url: str, timeout: float = 10.0, client: Optional[httpx.Client] = None):
        self.url = url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def _post(self, event: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self._client.post(
            f"{self.url}/{event}",
            json={"event": event, "sent_at": datetime.now(timezone.utc).isoformat(), **payload},
        )
        response.raise_for_status()
        if not response.content:
            return {}
        return response.json()

    def send_reminder(self, tenant_id, target_id, medicine_id, reminder_key, **context):
        data = self._post(
            "reminders",
            {
                "tenant_id": tenant_id,
                "target_id": target_id,
                "medicine_id": medicine_id,
                "reminder_key": reminder_key,
                "actions": ["taken", "missed", "snooze"],
                "context": context,
            },
        )
        return DeliveryHandle(
            message_id=str(data.get("message_id") or reminder_key),
            tenant_id=tenant_id,
            reminder_key=reminder_key,
        )

    def mark_expired(self, handle):
        self._post("reminders/expired", handle.to_dict())

    def alert_trackers(self, tenant_id, medicine_id, target_id, kind, **context):
        self._post(
            "tracker-alerts",
            {
                "tenant_id": tenant_id,
                "medicine_id": medicine_id,
                "target_id": target_id,
                "kind": kind,
                "context": context,
            },
        )

    def send_daily_summary(self, tenant_id, summary):
        self._post("daily-summaries", {"tenant_id": tenant_id, "summary": summary})

    def close(self) -> None:
        self._client.close()


def build_notifier(app_settings: Settings) -> Notifier:
    """Pick the notifier backend from settings"""
    if app_settings.NOTIFIER_BACKEND == "webhook":
        if not app_settings.NOTIFIER_WEBHOOK_URL:
            raise ValueError("NOTIFIER_WEBHOOK_URL is required for the webhook notifier")
        return WebhookNotifier(
            app_settings.NOTIFIER_WEBHOOK_URL,
            timeout=app_settings.NOTIFIER_TIMEOUT_SECONDS,
        )
    return LoggingNotifier()


__all__: List[str] = [
    "DeliveryHandle",
    "Notifier",
    "LoggingNotifier",
    "WebhookNotifier",
    "build_notifier",
]
