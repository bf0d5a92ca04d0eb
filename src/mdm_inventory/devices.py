from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

import httpx
from pydantic import ValidationError

from .audit import JsonAuditLogger
from .config import InventoryConfig
from .errors import GraphQueryError, TenantFailure
from .graph_client import GraphClient
from .models import DEVICE_SELECT_FIELDS, RawDeviceRecord, Session

logger = logging.getLogger(__name__)

MANAGED_DEVICES_PATH = "/deviceManagement/managedDevices"

# Fully MDM-managed devices only; excludes co-managed, EAS and other agents.
MDM_FILTER = "managementAgent eq 'mdm'"


class DeviceFetcher:
    """Retrieves the complete filtered Intune device list for one signed-in tenant."""

    def __init__(
        self,
        config: InventoryConfig,
        audit_logger: JsonAuditLogger,
        http_client: Optional[httpx.Client] = None,
    ):
        self.config = config
        self.audit = audit_logger
        self.http_client = http_client

    def fetch_all(self, session: Session, device_filter: str = MDM_FILTER) -> Union[List[RawDeviceRecord], TenantFailure]:
        params = {
            "$filter": device_filter,
            "$select": ",".join(DEVICE_SELECT_FIELDS),
            "$top": str(self.config.page_size),
        }
        records: List[RawDeviceRecord] = []
        try:
            with self._graph(session) as graph:
                for page in graph.iter_pages(MANAGED_DEVICES_PATH, params=params):
                    records.extend(self._parse_page(session.tenant, page))
        except GraphQueryError as exc:
            self.audit.error(
                "device_query_failed",
                tenant_id=session.tenant,
                status=exc.status_code,
                error=str(exc),
            )
            return TenantFailure.query(session.tenant, str(exc))

        self.audit.info(
            "device_query_completed",
            tenant_id=session.tenant,
            filter=device_filter,
            device_count=len(records),
        )
        return records

    def _graph(self, session: Session) -> GraphClient:
        return GraphClient(
            session,
            self.audit,
            base_url=self.config.graph_base_url,
            api_version=self.config.api_version,
            timeout=self.config.timeout,
            http_client=self.http_client,
        )

    def _parse_page(self, tenant: str, items: List[Any]) -> List[RawDeviceRecord]:
        parsed: List[RawDeviceRecord] = []
        for item in items:
            try:
                parsed.append(RawDeviceRecord.model_validate(item))
            except ValidationError as exc:
                device_id = item.get("id") if isinstance(item, dict) else None
                self.audit.warning(
                    "device_record_rejected",
                    tenant_id=tenant,
                    device_id=device_id,
                    errors=_field_errors(exc),
                )
        return parsed


def _field_errors(exc: ValidationError) -> Dict[str, str]:
    return {".".join(str(part) for part in error["loc"]) or "record": error["msg"] for error in exc.errors()}
