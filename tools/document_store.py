"""
Document Store Tool
Per-tenant JSON documents with last-writer-wins semantics
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from config import DocumentKeys, engine_config
from exceptions import StoreUnavailable
from models import TenantDocument


logger = logging.getLogger(__name__)

DOCUMENT_VERSION = "1.0"


def default_document(key: str) -> Dict[str, Any]:
    """Well-defined empty document for each key"""
    defaults: Dict[str, Dict[str, Any]] = {
        DocumentKeys.MEDICINES: {"medicines": []},
        DocumentKeys.SCHEDULES: {"generated_at": None, "schedules": []},
        DocumentKeys.SETTINGS: {
            "meal_times": copy.deepcopy(engine_config.DEFAULT_MEAL_TIMES),
            "timezone": engine_config.DEFAULT_TIMEZONE,
            "reminder_advance_minutes": engine_config.DEFAULT_ADVANCE_MINUTES,
            "trackers": [],
        },
        DocumentKeys.LOGS: {"logs": []},
        DocumentKeys.REMINDERS: {"reminders": {}},
    }
    document = {"version": DOCUMENT_VERSION, "tenant_id": None}
    document.update(copy.deepcopy(defaults.get(key, {"data": []})))
    return document


class DocumentStore(ABC):
    """Key-value store of opaque JSON documents scoped by tenant"""

    @abstractmethod
    def read(self, tenant_id: str, key: str) -> Dict[str, Any]:
        """Return the document, or its default when absent. Never fails on a missing key."""

    @abstractmethod
    def write(self, tenant_id: str, key: str, document: Dict[str, Any]) -> bool:
        """Replace the whole document. Returns False on failure."""

    @abstractmethod
    def tenants(self) -> List[str]:
        """Tenants that have at least one stored document"""

    def write_or_raise(self, tenant_id: str, key: str, document: Dict[str, Any]) -> None:
        if not self.write(tenant_id, key, document):
            raise StoreUnavailable(f"Failed to write '{key}' for tenant {tenant_id}")

    def initialize_tenant(self, tenant_id: str) -> None:
        """Write default documents for every key the tenant does not have yet"""
        for key in (
            DocumentKeys.MEDICINES,
            DocumentKeys.SCHEDULES,
            DocumentKeys.SETTINGS,
            DocumentKeys.LOGS,
            DocumentKeys.REMINDERS,
        ):
            document = self.read(tenant_id, key)
            if document.get("tenant_id") is None:
                document["tenant_id"] = tenant_id
                self.write_or_raise(tenant_id, key, document)


class SqlDocumentStore(DocumentStore):
    """DocumentStore backed by the tenant_documents table"""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    @classmethod
    def from_engine(cls, engine) -> "SqlDocumentStore":
        return cls(sessionmaker(autocommit=False, autoflush=False, bind=engine))

    def read(self, tenant_id: str, key: str) -> Dict[str, Any]:
        try:
            with self._session_factory() as session:
                row = session.execute(
                    select(TenantDocument).where(
                        TenantDocument.tenant_id == tenant_id,
                        TenantDocument.key == key,
                    )
                ).scalar_one_or_none()
                if row is None:
                    return default_document(key)
                return copy.deepcopy(row.body)
        except SQLAlchemyError as e:
            logger.error(f"Error reading {key} for tenant {tenant_id}: {e}")
            raise StoreUnavailable(f"Failed to read '{key}' for tenant {tenant_id}") from e

    def write(self, tenant_id: str, key: str, document: Dict[str, Any]) -> bool:
        body = copy.deepcopy(document)
        body["tenant_id"] = tenant_id
        body.setdefault("version", DOCUMENT_VERSION)

        session = self._session_factory()
        try:
            row = session.execute(
                select(TenantDocument).where(
                    TenantDocument.tenant_id == tenant_id,
                    TenantDocument.key == key,
                )
            ).scalar_one_or_none()
            if row is None:
                session.add(TenantDocument(tenant_id=tenant_id, key=key, body=body))
            else:
                row.body = body
            session.commit()
            return True
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Error writing {key} for tenant {tenant_id}: {e}")
            return False
        finally:
            session.close()

    def tenants(self) -> List[str]:
        try:
            with self._session_factory() as session:
                rows = session.execute(
                    select(TenantDocument.tenant_id).distinct().order_by(TenantDocument.tenant_id)
                ).scalars()
                return list(rows)
        except SQLAlchemyError as e:
            logger.error(f"Error listing tenants: {e}")
            raise StoreUnavailable("Failed to list tenants") from e


class TenantLocks:
    """One threading.Lock per tenant, shared by everything that rewrites tenant documents"""

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def __call__(self, tenant_id: str) -> threading.Lock:
        with self._guard:
            if tenant_id not in self._locks:
                self._locks[tenant_id] = threading.Lock()
            return self._locks[tenant_id]
