from __future__ import annotations

from collections import Counter
from typing import Iterable, List

from .models import NormalizedDeviceRecord, TenantSummaryRow


def summarize(records: Iterable[NormalizedDeviceRecord]) -> List[TenantSummaryRow]:
    """Count devices per tenant, in order of each tenant's first appearance.

    Tenants without records get no row.
    """
    counts = Counter(record.tenant for record in records)
    return [TenantSummaryRow(name=tenant, count=count) for tenant, count in counts.items()]
