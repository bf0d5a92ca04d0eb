from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .errors import TenantFailure

# Graph property names for the fixed device schema, in column order.
DEVICE_SELECT_FIELDS = (
    "id",
    "deviceName",
    "operatingSystem",
    "osVersion",
    "manufacturer",
    "model",
    "managementAgent",
    "complianceState",
    "lastSyncDateTime",
)


class RawDeviceRecord(BaseModel):
    """One Intune managedDevice as returned by Graph, restricted to a fixed field set.

    Unknown properties in the payload are dropped; ``id`` is the only
    required field.
    """

    device_id: str = Field(alias="id", min_length=1)
    device_name: Optional[str] = Field(default=None, alias="deviceName")
    operating_system: Optional[str] = Field(default=None, alias="operatingSystem")
    os_version: Optional[str] = Field(default=None, alias="osVersion")
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    management_agent: Optional[str] = Field(default=None, alias="managementAgent")
    compliance_state: Optional[str] = Field(default=None, alias="complianceState")
    last_check_in: Optional[datetime] = Field(default=None, alias="lastSyncDateTime")

    model_config = ConfigDict(
        extra="ignore", frozen=True, populate_by_name=True, protected_namespaces=()
    )


class NormalizedDeviceRecord(RawDeviceRecord):
    """A device record tagged with the tenant it was fetched from."""

    tenant: str

    @classmethod
    def from_raw(cls, tenant: str, raw: RawDeviceRecord) -> "NormalizedDeviceRecord":
        return cls(tenant=tenant, **raw.model_dump())


class TenantSummaryRow(BaseModel):
    name: str
    count: int = Field(ge=1)

    model_config = ConfigDict(frozen=True)


@dataclass
class Session:
    """Live, tenant-scoped sign-in. Owned by one tenant's processing only."""

    tenant: str
    access_token: str = field(repr=False)
    handle: Optional[Any] = field(default=None, repr=False)
    username: Optional[str] = None
    released: bool = False

    @property
    def authorization_header(self) -> dict:
        return {"Authorization": f"Bearer {self.access_token}"}


@dataclass(frozen=True)
class TenantOutcome:
    tenant: str
    records: Tuple[NormalizedDeviceRecord, ...] = ()
    failure: Optional[TenantFailure] = None

    @property
    def succeeded(self) -> bool:
        return self.failure is None

    @property
    def device_count(self) -> int:
        return len(self.records)
