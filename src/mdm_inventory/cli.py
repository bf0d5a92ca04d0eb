from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from .dependencies import ensure_dependencies
from .errors import ExportError, ModuleUnavailable

EXIT_EXPORT_FAILED = 1
EXIT_MODULE_UNAVAILABLE = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Inventory MDM-enrolled Intune devices across multiple tenants"
    )
    parser.add_argument("--config", required=True, help="Path to inventory configuration YAML")
    parser.add_argument(
        "--tenant",
        action="append",
        dest="tenants",
        help="Tenant to process (repeatable). Overrides the configured tenant list.",
    )
    parser.add_argument("--devices-out", type=Path, help="CSV path for the device list")
    parser.add_argument("--summary-out", type=Path, help="CSV path for the tenant summary")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Audit log level",
    )
    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> Dict[str, Any]:
    # Imported here so a missing library surfaces as ModuleUnavailable.
    from .audit import InMemoryAuditStore, JsonAuditLogger
    from .auth import TenantAuthenticator
    from .config import InventoryConfig
    from .devices import DeviceFetcher
    from .export import CsvExporter
    from .inventory import run_inventory
    from .tenant_processor import TenantProcessor

    config = InventoryConfig.load(args.config)
    if args.tenants:
        config = config.with_tenants(args.tenants)

    audit_store = InMemoryAuditStore()
    audit_logger = JsonAuditLogger(
        level=getattr(logging, args.log_level), store=audit_store, stream=sys.stderr
    )
    correlation_id = str(uuid.uuid4())
    processor = TenantProcessor(
        authenticator=TenantAuthenticator(config, audit_logger),
        fetcher=DeviceFetcher(config, audit_logger),
        audit_logger=audit_logger,
        correlation_id=correlation_id,
    )

    audit_logger.info("inventory_started", correlation_id=correlation_id, tenants=config.tenants)
    result = run_inventory(config.tenants, processor)
    summary = result.summary
    audit_logger.info(
        "inventory_completed",
        correlation_id=correlation_id,
        device_count=len(result.records),
        failed_tenants=[failure.tenant for failure in result.failures],
        empty_tenants=result.empty_tenants,
    )

    exporter = CsvExporter(audit_logger)
    devices_path = exporter.write_devices(result.records, args.devices_out or config.output.devices_path)
    summary_path = exporter.write_summary(summary, args.summary_out or config.output.summary_path)

    return {
        "correlation_id": correlation_id,
        "devices_file": str(devices_path),
        "summary_file": str(summary_path),
        "total_devices": len(result.records),
        "summary": [{"name": row.name, "count": row.count} for row in summary],
        "tenants": [
            {
                "tenant": outcome.tenant,
                "status": "ok" if outcome.succeeded else outcome.failure.kind.value,
                "device_count": outcome.device_count,
                "detail": None if outcome.succeeded else outcome.failure.detail,
            }
            for outcome in result.outcomes
        ],
        "rejected_devices": [
            {"tenant": event.tenant_id, "device_id": event.extra.get("device_id")}
            for event in audit_store.list("device_record_rejected")
        ],
        "warnings": len([e for e in audit_store.list() if e.level == "WARNING"]),
    }


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    try:
        ensure_dependencies()
    except ModuleUnavailable as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        raise SystemExit(EXIT_MODULE_UNAVAILABLE) from exc

    try:
        report = run(args)
    except ExportError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        raise SystemExit(EXIT_EXPORT_FAILED) from exc

    print(json.dumps(report, indent=2))
