from __future__ import annotations

from dataclasses import dataclass
from functools import reduce
from typing import Iterable, List, Tuple

from .aggregator import summarize
from .errors import TenantFailure
from .models import NormalizedDeviceRecord, TenantOutcome, TenantSummaryRow
from .tenant_processor import TenantProcessor


@dataclass(frozen=True)
class InventoryRun:
    """Result of processing the tenant list.

    ``records`` holds every normalized device in tenant order, then fetch
    order. It only grows through ``with_outcome``.
    """

    records: Tuple[NormalizedDeviceRecord, ...] = ()
    outcomes: Tuple[TenantOutcome, ...] = ()

    def with_outcome(self, outcome: TenantOutcome) -> "InventoryRun":
        return InventoryRun(
            records=self.records + outcome.records,
            outcomes=self.outcomes + (outcome,),
        )

    @property
    def summary(self) -> List[TenantSummaryRow]:
        return summarize(self.records)

    @property
    def failures(self) -> List[TenantFailure]:
        return [outcome.failure for outcome in self.outcomes if outcome.failure is not None]

    @property
    def empty_tenants(self) -> List[str]:
        """Tenants that were queried successfully but had no matching devices."""
        return [o.tenant for o in self.outcomes if o.succeeded and o.device_count == 0]


def run_inventory(tenants: Iterable[str], processor: TenantProcessor) -> InventoryRun:
    """Process tenants strictly one after another and fold their outcomes."""
    return reduce(
        lambda run, tenant: run.with_outcome(processor.process(tenant)),
        tenants,
        InventoryRun(),
    )
