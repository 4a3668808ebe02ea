"""
Prometheus metrics endpoint.

Exposes application metrics in Prometheus format for scraping.

Metrics exposed:
- ledger_entries_posted_total: Entries posted (reversals included) by tenant
- ledger_entries_voided_total: Entries voided by tenant
- ledger_operations_rejected_total: Ledger operations refused, by operation and error code
- ledger_operation_duration_seconds: Ledger command duration histogram
- ledger_trial_balance_mismatch_total: Trial balances that did not balance (alert on > 0)
- ledger_tenants: Tenants by status
- ledger_request_duration_seconds: HTTP request duration histogram
"""
import logging
import re
import time
from contextlib import contextmanager

from django.db.models import Count
from django.http import HttpResponse
from django.views import View
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger("ops")


entries_posted = Counter(
    "ledger_entries_posted_total",
    "Journal entries posted",
    ["tenant"],
)

entries_voided = Counter(
    "ledger_entries_voided_total",
    "Journal entries voided",
    ["tenant"],
)

operations_rejected = Counter(
    "ledger_operations_rejected_total",
    "Ledger operations refused with a ledger error",
    ["operation", "code"],
)

operation_duration = Histogram(
    "ledger_operation_duration_seconds",
    "Ledger command duration in seconds",
    ["operation"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

trial_balance_mismatches = Counter(
    "ledger_trial_balance_mismatch_total",
    "Trial balances whose debit and credit totals differed",
    ["tenant"],
)

tenants = Gauge(
    "ledger_tenants",
    "Tenants by status",
    ["status"],
)

request_duration = Histogram(
    "ledger_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)


@contextmanager
def observe_operation(operation: str):
    """
    Time a ledger command and count its rejections.

    Usage:
        with observe_operation("post"):
            ...
    """
    from accounting.exceptions import LedgerError

    start = time.perf_counter()
    try:
        yield
    except LedgerError as exc:
        operations_rejected.labels(operation=operation, code=exc.code).inc()
        raise
    finally:
        operation_duration.labels(operation=operation).observe(time.perf_counter() - start)


def collect_metrics():
    """Refresh gauges that are read from the database at scrape time."""
    from tenant.models import Tenant

    counts = dict(
        Tenant.objects.order_by().values("status").annotate(n=Count("id")).values_list("status", "n")
    )
    for status in Tenant.Status.values:
        tenants.labels(status=status).set(counts.get(status, 0))


def get_prometheus_response():
    """Generate Prometheus metrics response."""
    try:
        collect_metrics()
    except Exception as e:
        # Scrapes still return the in-process counters when the DB is down
        logger.error(f"Error collecting metrics: {e}")

    return HttpResponse(generate_latest(), content_type=CONTENT_TYPE_LATEST)


class MetricsView(View):
    """
    Prometheus metrics endpoint.

    Exposes metrics in Prometheus format at /_metrics.
    Should be protected in production (internal network only).
    """

    def get(self, request):
        return get_prometheus_response()


def track_request_metrics(get_response):
    """
    Middleware to track request duration metrics.

    Add to MIDDLEWARE after SecurityMiddleware:
        "ops.metrics.track_request_metrics",
    """

    def middleware(request):
        start = time.time()
        status = 500
        try:
            response = get_response(request)
            status = response.status_code
            return response
        finally:
            # Normalize endpoint for cardinality control
            endpoint = re.sub(r"/[0-9a-f-]{36}/", "/{uuid}/", request.path)
            endpoint = re.sub(r"/\d+/", "/{id}/", endpoint)

            request_duration.labels(
                method=request.method,
                endpoint=endpoint[:80],
                status=f"{status // 100}xx",
            ).observe(time.time() - start)

    return middleware
