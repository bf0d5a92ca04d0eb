from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from .audit import JsonAuditLogger
from .errors import ExportError
from .models import NormalizedDeviceRecord, TenantSummaryRow

logger = logging.getLogger(__name__)

DEVICE_COLUMNS = (
    "Tenant",
    "DeviceId",
    "DeviceName",
    "OperatingSystem",
    "OsVersion",
    "Manufacturer",
    "Model",
    "ManagementAgent",
    "ComplianceState",
    "LastCheckInDateTime",
)

SUMMARY_COLUMNS = ("Name", "Count")


def device_row(record: NormalizedDeviceRecord) -> Dict[str, str]:
    return {
        "Tenant": record.tenant,
        "DeviceId": record.device_id,
        "DeviceName": record.device_name or "",
        "OperatingSystem": record.operating_system or "",
        "OsVersion": record.os_version or "",
        "Manufacturer": record.manufacturer or "",
        "Model": record.model or "",
        "ManagementAgent": record.management_agent or "",
        "ComplianceState": record.compliance_state or "",
        "LastCheckInDateTime": record.last_check_in.isoformat() if record.last_check_in else "",
    }


class CsvExporter:
    """Writes the device list and the tenant summary as CSV files."""

    def __init__(self, audit_logger: Optional[JsonAuditLogger] = None):
        self.audit = audit_logger or JsonAuditLogger()

    def write_devices(self, records: Iterable[NormalizedDeviceRecord], path: Union[str, Path]) -> Path:
        rows = [device_row(record) for record in records]
        return self._write(Path(path), DEVICE_COLUMNS, rows, kind="devices")

    def write_summary(self, rows: Iterable[TenantSummaryRow], path: Union[str, Path]) -> Path:
        csv_rows = [{"Name": row.name, "Count": str(row.count)} for row in rows]
        return self._write(Path(path), SUMMARY_COLUMNS, csv_rows, kind="summary")

    def _write(self, path: Path, columns: Sequence[str], rows: List[Dict[str, str]], kind: str) -> Path:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", newline="", encoding="utf-8") as handle:
                writer = csv.DictWriter(handle, fieldnames=list(columns))
                writer.writeheader()
                writer.writerows(rows)
        except OSError as exc:
            self.audit.error("export_failed", kind=kind, path=str(path), error=str(exc))
            raise ExportError(f"Failed to write {kind} to {path}: {exc}") from exc

        self.audit.info("export_written", kind=kind, path=str(path), rows=len(rows))
        return path
