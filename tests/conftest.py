"""
Pytest Configuration and Shared Fixtures
========================================

This module provides shared fixtures for all MedTrack tests.
Fixtures include an in-memory document store, a pinned clock, a mocked
notifier, wired services and an API test client.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from typing import Generator, Dict, Any, Optional
from unittest.mock import MagicMock

# Keep the app on an in-memory database and off the background ticker
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base
import models  # noqa: F401
from api.deps import ServiceContainer
from tools.document_store import SqlDocumentStore
from tools.meal_windows import resolve_timezone
from tools.notification_service import DeliveryHandle, Notifier
from tools.scheduler import Clock
from app import app


TENANT_ID = "guild-1"
TARGET_ID = "user-target"
TRACKER_ID = "user-tracker"

# 06:45 in Asia/Kolkata, the default before_breakfast reminder time
BREAKFAST_REMINDER_UTC = datetime(2025, 1, 15, 1, 15, tzinfo=timezone.utc)


class FixedClock(Clock):
    """Clock pinned to a settable instant"""

    def __init__(self, current: datetime):
        self.current = current

    def now(self, timezone: Optional[str] = None) -> datetime:
        if timezone:
            return self.current.astimezone(resolve_timezone(timezone))
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, current: datetime) -> None:
        self.current = current


# ==================== STORAGE FIXTURES ====================

@pytest.fixture(scope="function")
def test_engine():
    """Create a test database engine with in-memory SQLite"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def store(test_engine) -> SqlDocumentStore:
    return SqlDocumentStore.from_engine(test_engine)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(BREAKFAST_REMINDER_UTC)


# ==================== NOTIFIER FIXTURES ====================

@pytest.fixture
def notifier() -> MagicMock:
    """Notifier mock that returns a delivery handle for every reminder"""
    mock = MagicMock(spec=Notifier)

    def _send(tenant_id, target_id, medicine_id, reminder_key, **context):
        return DeliveryHandle(
            message_id=f"msg-{reminder_key[-6:]}",
            tenant_id=tenant_id,
            reminder_key=reminder_key,
        )

    mock.send_reminder.side_effect = _send
    return mock


# ==================== SERVICE FIXTURES ====================

@pytest.fixture
def container(store, notifier, clock) -> ServiceContainer:
    return ServiceContainer(store, notifier, clock=clock)


@pytest.fixture
def engine(container):
    return container.engine


@pytest.fixture
def activity_log(container):
    return container.activity_log


@pytest.fixture
def ledger(container):
    return container.ledger


@pytest.fixture
def medication_service(container):
    return container.medication_service


@pytest.fixture
def schedule_service(container):
    return container.schedule_service


# ==================== SAMPLE DATA FIXTURES ====================

@pytest.fixture
def sample_medicine_data() -> Dict[str, Any]:
    return {
        "name": "Metformin",
        "dosage": "500mg",
        "frequency": ["before_breakfast"],
        "inventory": 10,
        "target_id": TARGET_ID,
    }


@pytest.fixture
def tenant(store, schedule_service) -> str:
    """Tenant with default settings and one tracker"""
    store.initialize_tenant(TENANT_ID)
    schedule_service.add_tracker(TENANT_ID, TRACKER_ID, added_by=TRACKER_ID)
    return TENANT_ID


@pytest.fixture
def medicine(tenant, medication_service, schedule_service, sample_medicine_data) -> Dict[str, Any]:
    """One before_breakfast medicine with its slots compiled"""
    created = medication_service.add_medicine(tenant, added_by=TRACKER_ID, **sample_medicine_data)
    schedule_service.generate_schedules(tenant)
    return created


@pytest.fixture
def delivered(engine, medicine, tenant) -> str:
    """Key of a reminder delivered by one tick at 06:45 local"""
    result = engine.process_tenant(tenant)
    assert len(result.delivered) == 1
    return result.delivered[0]


# ==================== API FIXTURES ====================

@pytest.fixture
def client(container) -> Generator[TestClient, None, None]:
    """FastAPI test client wired to the in-memory container"""
    app.state.container = container

    with TestClient(app) as test_client:
        yield test_client

    app.state.container = None


@pytest.fixture
def tracker_headers() -> Dict[str, str]:
    return {"X-User-Id": TRACKER_ID}


@pytest.fixture
def target_headers() -> Dict[str, str]:
    return {"X-User-Id": TARGET_ID}


# ==================== PYTEST CONFIGURATION ====================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "api: mark test as an API test")
