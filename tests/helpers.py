"""Payload builders and collaborator fakes for the inventory tests."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Union

from mdm_inventory.errors import TenantFailure
from mdm_inventory.models import RawDeviceRecord, Session


def device_payload(device_id: str, **overrides: Any) -> Dict[str, Any]:
    """Build a Graph managedDevice item."""
    payload: Dict[str, Any] = {
        "id": device_id,
        "deviceName": f"DEV-{device_id}",
        "operatingSystem": "Windows",
        "osVersion": "10.0.22631.3447",
        "manufacturer": "Contoso Hardware",
        "model": "Surface Laptop 5",
        "managementAgent": "mdm",
        "complianceState": "compliant",
        "lastSyncDateTime": "2024-05-01T08:30:00Z",
    }
    payload.update(overrides)
    return payload


def raw_devices(prefix: str, count: int) -> List[RawDeviceRecord]:
    return [RawDeviceRecord.model_validate(device_payload(f"{prefix}-{i}")) for i in range(count)]


class FakeAuthenticator:
    """Records session lifecycle calls; fails sign-in for the given tenants."""

    def __init__(self, failing: Sequence[str] = ()):
        self.failing = set(failing)
        self.calls: List[str] = []
        self.live: Optional[Session] = None

    def acquire_session(self, tenant: str) -> Union[Session, TenantFailure]:
        assert self.live is None, "a previous session was not released"
        self.calls.append(f"acquire:{tenant}")
        if tenant in self.failing:
            return TenantFailure.auth(tenant, "MFA request was declined")
        self.live = Session(tenant=tenant, access_token=f"token-{tenant}")
        return self.live

    def release_session(self, session: Session) -> None:
        self.calls.append(f"release:{session.tenant}")
        session.released = True
        self.live = None


class FakeFetcher:
    """Returns canned results per tenant; a callable result is invoked."""

    def __init__(self, results: Dict[str, Any]):
        self.results = results
        self.filters: List[str] = []

    def fetch_all(self, session: Session, device_filter: str) -> Any:
        assert not session.released
        self.filters.append(device_filter)
        result = self.results.get(session.tenant, [])
        if callable(result):
            return result(session)
        return result
