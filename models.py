"""
Database Models
SQLAlchemy ORM models and shared enums for MedTrack
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON, UniqueConstraint, Index
from datetime import datetime, timezone
from enum import Enum as PyEnum

from database import Base


# ==================== ENUMS ====================

class MealName(str, PyEnum):
    """Named meal windows configured per tenant"""
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"


class MealTiming(str, PyEnum):
    """Whether a dose is taken before or after its meal"""
    BEFORE = "before"
    AFTER = "after"


class FrequencyTag(str, PyEnum):
    """Per-medicine dose tag, one reminder slot per tag"""
    BEFORE_BREAKFAST = "before_breakfast"
    AFTER_BREAKFAST = "after_breakfast"
    BEFORE_LUNCH = "before_lunch"
    AFTER_LUNCH = "after_lunch"
    BEFORE_DINNER = "before_dinner"
    AFTER_DINNER = "after_dinner"


class ReminderState(str, PyEnum):
    """Lifecycle state of a reminder instance"""
    PENDING = "pending"
    DELIVERED = "delivered"
    RESPONDED = "responded"
    ESCALATED = "escalated"
    VERIFIED = "verified"


class ReminderKind(str, PyEnum):
    """How a reminder instance came to exist"""
    SCHEDULED = "scheduled"
    SNOOZE = "snooze"
    VERIFICATION = "verification"


class ResponseAction(str, PyEnum):
    """Actions a target can take on a delivered reminder"""
    TAKEN = "taken"
    MISSED = "missed"
    SNOOZE = "snooze"


class VerificationOutcome(str, PyEnum):
    """Tracker verdicts on an escalated dose"""
    TAKEN = "taken"
    MISSED = "missed"
    LATE = "late"


class ManualIntakeStatus(str, PyEnum):
    """Out-of-band intake statuses a tracker may record"""
    TAKEN = "taken"
    TAKEN_LATE = "taken_late"
    MISSED = "missed"
    UNDO_MISSED = "undo_missed"


class AlertKind(str, PyEnum):
    """Kinds of tracker alerts raised by the engine"""
    MISSED_DOSE_AUTO = "missed_dose_auto"
    MISSED_DOSE_REPORTED = "missed_dose_reported"
    LOW_STOCK = "low_stock"


# ==================== MODELS ====================

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TenantDocument(Base):
    """One JSON document per (tenant, key), last writer wins"""
    __tablename__ = "tenant_documents"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(100), nullable=False)
    key = Column(String(50), nullable=False)
    body = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "key", name="uq_tenant_document_key"),
        Index("ix_tenant_documents_tenant", "tenant_id"),
    )

    def __repr__(self):
        return f"<TenantDocument(tenant='{self.tenant_id}', key='{self.key}')>"
