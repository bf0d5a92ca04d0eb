"""Shared fixtures for the inventory tests."""

from __future__ import annotations

import io
from typing import Callable

import pytest

from mdm_inventory.audit import InMemoryAuditStore, JsonAuditLogger
from mdm_inventory.config import InventoryConfig
from mdm_inventory.models import Session


@pytest.fixture
def audit_store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


@pytest.fixture
def audit_logger(audit_store: InMemoryAuditStore) -> JsonAuditLogger:
    return JsonAuditLogger(name="mdm_inventory.tests", store=audit_store, stream=io.StringIO())


@pytest.fixture
def inventory_config() -> InventoryConfig:
    return InventoryConfig(
        tenants=["a.com", "b.com"],
        auth={"type": "device_code", "client_id": "client-123"},
        page_size=2,
    )


@pytest.fixture
def make_session() -> Callable[..., Session]:
    def _make(tenant: str = "a.com") -> Session:
        return Session(tenant=tenant, access_token="secret-token")

    return _make


@pytest.fixture(autouse=True)
def _isolate_audit_handlers():
    """Detach handlers left on the shared audit logger by a previous test,
    whose captured streams pytest has already closed."""
    import logging

    logger = logging.getLogger("mdm_inventory")
    saved = list(logger.handlers)
    yield
    for handler in list(logger.handlers):
        if handler not in saved:
            logger.removeHandler(handler)
