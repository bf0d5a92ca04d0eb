from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence, Union

from .audit import JsonAuditLogger
from .devices import MDM_FILTER
from .errors import TenantFailure
from .models import NormalizedDeviceRecord, RawDeviceRecord, Session, TenantOutcome

logger = logging.getLogger(__name__)


class Authenticator(Protocol):
    def acquire_session(self, tenant: str) -> Union[Session, TenantFailure]:
        ...

    def release_session(self, session: Session) -> None:
        ...


class Fetcher(Protocol):
    def fetch_all(self, session: Session, device_filter: str) -> Union[Sequence[RawDeviceRecord], TenantFailure]:
        ...


def normalize(tenant: str, raw_records: Sequence[RawDeviceRecord]) -> List[NormalizedDeviceRecord]:
    return [NormalizedDeviceRecord.from_raw(tenant, raw) for raw in raw_records]


class TenantProcessor:
    """Drives one tenant end-to-end: sign in, fetch, normalize, release.

    Sign-in and query failures are returned as part of the outcome so the run
    can move on to the next tenant. The session is released before
    ``process`` returns, whatever happened during the fetch.
    """

    def __init__(
        self,
        authenticator: Authenticator,
        fetcher: Fetcher,
        audit_logger: JsonAuditLogger,
        device_filter: str = MDM_FILTER,
        correlation_id: Optional[str] = None,
    ):
        self.authenticator = authenticator
        self.fetcher = fetcher
        self.audit = audit_logger
        self.device_filter = device_filter
        self.correlation_id = correlation_id

    def process(self, tenant: str) -> TenantOutcome:
        self.audit.info("tenant_started", tenant_id=tenant, correlation_id=self.correlation_id)

        session = self.authenticator.acquire_session(tenant)
        if isinstance(session, TenantFailure):
            return self._failed(session)

        try:
            fetched = self.fetcher.fetch_all(session, self.device_filter)
        finally:
            self.authenticator.release_session(session)

        if isinstance(fetched, TenantFailure):
            return self._failed(fetched)

        records = tuple(normalize(tenant, fetched))
        self.audit.info(
            "tenant_completed",
            tenant_id=tenant,
            correlation_id=self.correlation_id,
            device_count=len(records),
        )
        return TenantOutcome(tenant=tenant, records=records)

    def _failed(self, failure: TenantFailure) -> TenantOutcome:
        self.audit.error(
            "tenant_failed",
            tenant_id=failure.tenant,
            correlation_id=self.correlation_id,
            reason=failure.kind.value,
            detail=failure.detail,
        )
        return TenantOutcome(tenant=failure.tenant, failure=failure)
