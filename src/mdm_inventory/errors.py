from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional


class InventoryError(Exception):
    """Base class for errors raised by the inventory tooling."""


class AuthenticationError(InventoryError):
    """Interactive sign-in for a tenant did not yield a usable token."""


class GraphQueryError(InventoryError):
    """A Microsoft Graph request failed or returned an unusable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ModuleUnavailable(InventoryError):
    """A required library is not importable. Fatal before any tenant runs."""

    def __init__(self, modules: Iterable[str]):
        self.modules = sorted(modules)
        super().__init__(
            "Required modules are not installed: "
            + ", ".join(self.modules)
            + ". Install them with `pip install mdm-inventory`."
        )


class ExportError(InventoryError):
    """Writing the inventory output failed. Fatal after aggregation."""


class FailureKind(str, Enum):
    AUTH = "AuthError"
    QUERY = "QueryError"


@dataclass(frozen=True)
class TenantFailure:
    """Tenant-scoped failure value. Recorded, never raised through the run loop."""

    tenant: str
    kind: FailureKind
    detail: str

    @classmethod
    def auth(cls, tenant: str, detail: str) -> "TenantFailure":
        return cls(tenant=tenant, kind=FailureKind.AUTH, detail=detail)

    @classmethod
    def query(cls, tenant: str, detail: str) -> "TenantFailure":
        return cls(tenant=tenant, kind=FailureKind.QUERY, detail=detail)
