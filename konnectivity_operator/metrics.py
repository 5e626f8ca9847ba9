"""
Prometheus metrics for the operator and the status API.
"""
from prometheus_client import Counter, Gauge

RECONCILE_TOTAL = Counter(
    "konnectivity_operator_reconcile_total",
    "Reconcile passes of the konnectivity agent, by operation performed",
    ["operation", "result"],
)
RECONCILE_ERRORS = Counter(
    "konnectivity_operator_reconcile_errors_total",
    "Reconcile passes aborted by an error",
    ["error"],
)
AGENTS_TOTAL = Gauge(
    "konnectivity_operator_agents",
    "Tenant control planes by konnectivity agent state (observed by the status API)",
    ["state"],
)


def record_pass(operation: str, result: str):
    RECONCILE_TOTAL.labels(operation=operation, result=result).inc()


def record_error(error: Exception):
    RECONCILE_ERRORS.labels(error=type(error).__name__).inc()
