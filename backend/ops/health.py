"""
Health checks for the ledger service.

Each check returns a dict with a "status" of healthy, unhealthy,
skipped or error. The full report rolls them up:

- databases: every configured alias answers SELECT 1
- tenant_schemas: each schema-isolated tenant has its schema and ledger tables
- entry_sequences: each active tenant has exactly one entry number counter

Endpoints:
- /_health/live    liveness probe, no I/O
- /_health/ready   readiness probe, default database only
- /_health/full    every check, for dashboards
"""
import time
from typing import Any, Callable, Dict

from django.conf import settings
from django.db import connections
from django.http import JsonResponse
from django.views import View

from ops.logging_config import get_logger

logger = get_logger("ops")

Check = Dict[str, Any]

# Cap on problem rows echoed back in a report
MAX_REPORTED = 10


def _timed(fn: Callable[[], Check]) -> Check:
    start = time.monotonic()
    result = fn()
    result["duration_ms"] = round((time.monotonic() - start) * 1000, 2)
    return result


def ping_database(alias: str = "default") -> Check:
    """Round-trip a trivial query on one database alias."""
    def probe():
        try:
            conn = connections[alias]
            conn.ensure_connection()
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
        except Exception as e:
            return {"status": "unhealthy", "alias": alias, "error": str(e)}
        return {"status": "healthy", "alias": alias}

    return _timed(probe)


def check_databases() -> Check:
    results = {alias: ping_database(alias) for alias in settings.DATABASES}
    healthy = all(r["status"] == "healthy" for r in results.values())
    return {"status": "healthy" if healthy else "unhealthy", "databases": results}


def _active_tenants():
    from tenant.models import Tenant

    return list(Tenant.objects.filter(status=Tenant.Status.ACTIVE).order_by("id"))


def check_tenant_schemas() -> Check:
    """Every active schema-isolated tenant has its ledger tables."""
    from tenant.context import uses_schemas
    from tenant.provisioning import LEDGER_TABLES, missing_ledger_tables

    try:
        isolated = [t for t in _active_tenants() if uses_schemas(t.db_alias)]
        if not isolated:
            return {"status": "skipped", "reason": "No schema-isolated tenants"}

        broken = []
        for tenant in isolated:
            missing = missing_ledger_tables(tenant)
            if missing:
                broken.append({"tenant": tenant.slug, "missing": missing})
    except Exception as e:
        logger.exception("health.tenant_schemas_error")
        return {"status": "error", "error": str(e)}

    if broken:
        logger.error("health.tenant_schemas_broken", extra={"broken": broken[:MAX_REPORTED]})
        return {
            "status": "unhealthy",
            "tenants": len(isolated),
            "expected_tables": list(LEDGER_TABLES),
            "broken": broken[:MAX_REPORTED],
        }
    return {"status": "healthy", "tenants": len(isolated)}


def check_entry_sequences() -> Check:
    """
    Every active tenant has exactly one entry number counter.

    A missing counter makes every post for that tenant fail, so this is
    the check that catches a half-provisioned tenant.
    """
    from accounting.models import EntrySequence
    from tenant.context import ledger_transaction, system_context

    try:
        tenants = _active_tenants()
        broken = []
        for tenant in tenants:
            ctx = system_context(tenant)
            with ledger_transaction(ctx):
                counters = EntrySequence.objects.for_context(ctx).count()
            if counters != 1:
                broken.append({"tenant": tenant.slug, "counters": counters})
    except Exception as e:
        logger.exception("health.entry_sequences_error")
        return {"status": "error", "error": str(e)}

    if not tenants:
        return {"status": "skipped", "reason": "No active tenants"}
    if broken:
        logger.error("health.entry_sequences_broken", extra={"broken": broken[:MAX_REPORTED]})
        return {"status": "unhealthy", "tenants": len(tenants), "broken": broken[:MAX_REPORTED]}
    return {"status": "healthy", "tenants": len(tenants)}


CHECKS = {
    "databases": check_databases,
    "tenant_schemas": check_tenant_schemas,
    "entry_sequences": check_entry_sequences,
}


def full_report() -> Dict[str, Any]:
    checks = {name: _timed(fn) for name, fn in CHECKS.items()}

    statuses = {c["status"] for c in checks.values()}
    if statuses <= {"healthy", "skipped"}:
        overall = "healthy"
    elif "unhealthy" in statuses:
        overall = "unhealthy"
    else:
        overall = "degraded"

    return {
        "status": overall,
        "checks": checks,
        "version": getattr(settings, "VERSION", "unknown"),
        "environment": "development" if settings.DEBUG else "production",
    }


class LivenessView(View):
    """The process is up. Touches nothing else."""

    def get(self, request):
        return JsonResponse({"status": "alive"})


class ReadinessView(View):
    """Ready once the default database answers."""

    def get(self, request):
        db = ping_database("default")
        if db["status"] == "healthy":
            return JsonResponse({"status": "ready", "database": db})
        return JsonResponse({"status": "not_ready", "database": db}, status=503)


class FullHealthView(View):
    """Every check. Keep it on the internal network."""

    def get(self, request):
        report = full_report()
        return JsonResponse(report, status=200 if report["status"] == "healthy" else 503)
