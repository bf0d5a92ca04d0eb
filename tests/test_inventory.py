"""End-to-end tests for the multi-tenant inventory run."""

from __future__ import annotations

import httpx
import pytest

from mdm_inventory.devices import DeviceFetcher
from mdm_inventory.errors import FailureKind, TenantFailure
from mdm_inventory.inventory import InventoryRun, run_inventory
from mdm_inventory.models import TenantOutcome, TenantSummaryRow
from mdm_inventory.tenant_processor import TenantProcessor
from tests.helpers import FakeAuthenticator, FakeFetcher, device_payload, raw_devices


def _processor(audit_logger, results, failing=()):
    authenticator = FakeAuthenticator(failing=failing)
    return TenantProcessor(authenticator, FakeFetcher(results), audit_logger), authenticator


def test_tenant_with_no_devices_gets_no_summary_row(audit_logger) -> None:
    processor, _ = _processor(audit_logger, {"a.com": raw_devices("a", 3), "b.com": []})

    run = run_inventory(["a.com", "b.com"], processor)

    assert len(run.records) == 3
    assert all(record.tenant == "a.com" for record in run.records)
    assert run.summary == [TenantSummaryRow(name="a.com", count=3)]
    assert run.empty_tenants == ["b.com"]
    assert run.failures == []


def test_auth_failure_leaves_run_empty_without_aborting(audit_logger) -> None:
    processor, authenticator = _processor(audit_logger, {}, failing=["a.com"])

    run = run_inventory(["a.com"], processor)

    assert run.records == ()
    assert run.summary == []
    assert [failure.kind for failure in run.failures] == [FailureKind.AUTH]
    assert authenticator.calls == ["acquire:a.com"]


def test_records_keep_tenant_then_fetch_order(audit_logger) -> None:
    processor, _ = _processor(
        audit_logger, {"a.com": raw_devices("a", 2), "b.com": raw_devices("b", 5)}
    )

    run = run_inventory(["a.com", "b.com"], processor)

    assert len(run.records) == 7
    assert [r.tenant for r in run.records] == ["a.com"] * 2 + ["b.com"] * 5
    assert [r.device_id for r in run.records[:2]] == ["a-0", "a-1"]
    assert run.summary == [
        TenantSummaryRow(name="a.com", count=2),
        TenantSummaryRow(name="b.com", count=5),
    ]


def test_failures_do_not_stop_later_tenants(audit_logger) -> None:
    processor, authenticator = _processor(
        audit_logger,
        {
            "b.com": TenantFailure.query("b.com", "status 403"),
            "c.com": raw_devices("c", 4),
        },
        failing=["a.com"],
    )

    run = run_inventory(["a.com", "b.com", "c.com"], processor)

    assert [o.tenant for o in run.outcomes] == ["a.com", "b.com", "c.com"]
    assert [f.kind for f in run.failures] == [FailureKind.AUTH, FailureKind.QUERY]
    assert run.summary == [TenantSummaryRow(name="c.com", count=4)]
    # Every acquired session is released before the next tenant signs in.
    assert authenticator.calls == [
        "acquire:a.com",
        "acquire:b.com",
        "release:b.com",
        "acquire:c.com",
        "release:c.com",
    ]


@pytest.mark.parametrize(
    ("counts", "failing"),
    [
        ({"a.com": 1, "b.com": 0, "c.com": 7}, ()),
        ({"a.com": 2, "b.com": 3, "c.com": 0}, ("b.com",)),
        ({"a.com": 0, "b.com": 0, "c.com": 0}, ("a.com", "c.com")),
    ],
)
def test_summary_matches_accumulated_records(audit_logger, counts, failing) -> None:
    results = {tenant: raw_devices(tenant, n) for tenant, n in counts.items()}
    processor, _ = _processor(audit_logger, results, failing=failing)

    run = run_inventory(list(counts), processor)
    summary = run.summary

    assert len(summary) <= len(counts) - len(failing)
    assert sum(row.count for row in summary) == len(run.records)
    for row in summary:
        assert row.count == sum(1 for r in run.records if r.tenant == row.name)
    assert summary == run.summary


def test_with_outcome_returns_new_run() -> None:
    empty = InventoryRun()
    outcome = TenantOutcome(tenant="a.com", failure=TenantFailure.auth("a.com", "declined"))

    grown = empty.with_outcome(outcome)

    assert empty.outcomes == ()
    assert grown.outcomes == (outcome,)
    assert grown.records == ()


def test_bad_next_link_for_one_tenant_does_not_stop_the_next(
    inventory_config, audit_logger
) -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        if request.headers["Authorization"] == "Bearer token-a.com":
            return httpx.Response(
                200,
                json={
                    "value": [device_payload("a-1")],
                    "@odata.nextLink": "https://graph.microsoft.com:abc/x",
                },
            )
        return httpx.Response(200, json={"value": [device_payload("b-1")]})

    authenticator = FakeAuthenticator()
    fetcher = DeviceFetcher(
        inventory_config,
        audit_logger,
        http_client=httpx.Client(transport=httpx.MockTransport(_handler)),
    )
    processor = TenantProcessor(authenticator, fetcher, audit_logger)

    run = run_inventory(["a.com", "b.com"], processor)

    assert [f.kind for f in run.failures] == [FailureKind.QUERY]
    assert run.failures[0].tenant == "a.com"
    assert [r.device_id for r in run.records] == ["b-1"]
    assert run.summary == [TenantSummaryRow(name="b.com", count=1)]
    assert authenticator.calls == [
        "acquire:a.com",
        "release:a.com",
        "acquire:b.com",
        "release:b.com",
    ]
