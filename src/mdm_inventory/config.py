from __future__ import annotations

from pathlib import Path
from typing import List, Literal, Optional, Set, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Public client registered by Microsoft for the Graph PowerShell SDK. It is
# pre-consented for delegated Intune read scopes in most tenants.
GRAPH_COMMAND_LINE_CLIENT_ID = "14d82eec-204b-4c2f-b7e8-296a70dab67e"


class DeviceCodeAuth(BaseModel):
    """Device code flow: the operator completes sign-in and MFA on any browser."""

    type: Literal["device_code"]
    client_id: str = GRAPH_COMMAND_LINE_CLIENT_ID
    authority_host: str = Field(
        default="https://login.microsoftonline.com",
        description="Entra ID authority host",
    )

    model_config = ConfigDict(extra="forbid")


class InteractiveAuth(BaseModel):
    """MSAL interactive flow: a local browser window is opened for sign-in."""

    type: Literal["interactive"]
    client_id: str = GRAPH_COMMAND_LINE_CLIENT_ID
    authority_host: str = Field(
        default="https://login.microsoftonline.com",
        description="Entra ID authority host",
    )
    login_hint: Optional[str] = Field(
        default=None, description="Pre-fill the account picker with this UPN"
    )
    timeout: Optional[int] = Field(
        default=None, description="Seconds to wait for the browser redirect"
    )

    model_config = ConfigDict(extra="forbid")


class InteractiveBrowserAuth(BaseModel):
    """azure-identity InteractiveBrowserCredential."""

    type: Literal["interactive_browser"]
    client_id: str = GRAPH_COMMAND_LINE_CLIENT_ID
    authority_host: str = Field(
        default="https://login.microsoftonline.com",
        description="Entra ID authority host",
    )
    login_hint: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


AuthConfig = Union[DeviceCodeAuth, InteractiveAuth, InteractiveBrowserAuth]


class OutputConfig(BaseModel):
    devices_path: Path = Path("MDMDevices.csv")
    summary_path: Path = Path("MDMDeviceSummary.csv")

    model_config = ConfigDict(extra="forbid")


class InventoryConfig(BaseModel):
    tenants: List[str] = Field(description="Tenant domains or IDs, processed in order")
    auth: AuthConfig = Field(
        default_factory=lambda: DeviceCodeAuth(type="device_code"), discriminator="type"
    )
    scopes: List[str] = Field(
        default_factory=lambda: ["DeviceManagementManagedDevices.Read.All"]
    )
    graph_base_url: str = Field(
        default="https://graph.microsoft.com",
        description="Graph endpoint. Override for national clouds if needed.",
    )
    api_version: str = "v1.0"
    page_size: int = Field(default=100, ge=1, le=1000)
    timeout: float = Field(default=60.0, gt=0)
    output: OutputConfig = Field(default_factory=OutputConfig)

    model_config = ConfigDict(extra="forbid")

    @field_validator("tenants")
    @classmethod
    def ensure_tenants(cls, value: List[str]) -> List[str]:
        tenants = [tenant.strip() for tenant in value]
        if not tenants:
            raise ValueError("At least one tenant must be configured")
        if any(not tenant for tenant in tenants):
            raise ValueError("Tenant identifiers must not be blank")
        seen: Set[str] = set()
        duplicates: List[str] = []
        for tenant in tenants:
            if tenant.lower() in seen:
                duplicates.append(tenant)
            seen.add(tenant.lower())
        if duplicates:
            raise ValueError(f"Duplicate tenants configured: {', '.join(duplicates)}")
        return tenants

    @field_validator("scopes")
    @classmethod
    def ensure_scopes(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("At least one scope must be provided")
        return value

    def with_tenants(self, tenants: List[str]) -> "InventoryConfig":
        return type(self).model_validate({**self.model_dump(), "tenants": tenants})

    @classmethod
    def load(cls, path: Union[str, Path]) -> "InventoryConfig":
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}

        return cls(**raw)
