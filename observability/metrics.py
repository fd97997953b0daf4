from __future__ import annotations

from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

LIFECYCLE_TRANSITIONS = Counter(
    "lifecycle_transitions_total", "Problem review state transitions", ["state"]
)
NOTIFICATION_FAILURES = Counter(
    "notification_failures_total", "Best-effort notification failures", ["channel"]
)
STORE_SCAN_FALLBACKS = Counter(
    "store_scan_fallbacks_total", "Full-table scans on the entity store", ["reason"]
)
RECONCILE_REPAIRS = Counter(
    "reconcile_repairs_total", "Repairs applied by membership reconciliation", ["kind"]
)


def metrics_endpoint() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "LIFECYCLE_TRANSITIONS",
    "NOTIFICATION_FAILURES",
    "STORE_SCAN_FALLBACKS",
    "RECONCILE_REPAIRS",
    "metrics_endpoint",
]
