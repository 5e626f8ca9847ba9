"""
Konnectivity Agent Operator — kopf handlers for TenantControlPlane objects

Architecture:
  TenantControlPlane CRD → Operator watches → Reconcile Pass:
    1. Resolve a client for the tenant cluster (admin kubeconfig secret)
    2a. Add-on enabled  → create-or-update the konnectivity-agent DaemonSet
    2b. Add-on disabled → delete the DaemonSet (already gone is fine)
    3. Project the outcome into status.addons.konnectivity.agent

  Triggers:
    - create / update / resume of a TenantControlPlane
    - periodic resync timer (drift, late address assignment, status
      left behind after the add-on was disabled)

Design Principles:
  - Idempotent: the mutate function and the delete are safe to repeat
  - No internal retries: failures raise TemporaryError, kopf reschedules
  - Status is only written when a pass completes (or when disabling)
  - Observable: kopf events + Prometheus counters + Redis Streams
"""

import logging

import kopf
from prometheus_client import start_http_server

from konnectivity_operator import events, metrics
from konnectivity_operator.config import settings
from konnectivity_operator.errors import OperatorError
from konnectivity_operator.models import TenantControlPlane
from konnectivity_operator.resources.konnectivity_agent import KonnectivityAgent
from konnectivity_operator.services.tenant_client import TenantClientResolver

logger = logging.getLogger("konnectivity-operator")

CRD_GROUP = settings.CRD_GROUP
CRD_VERSION = settings.CRD_VERSION
CRD_PLURAL = settings.CRD_PLURAL
MAX_WORKERS = settings.MAX_WORKERS
RETRY_DELAY = settings.RETRY_DELAY
RESYNC_INTERVAL = settings.RESYNC_INTERVAL
REQUEST_TIMEOUT = settings.REQUEST_TIMEOUT
METRICS_PORT = settings.METRICS_PORT

tenant_client_resolver = TenantClientResolver()


# ---------------------------------------------------------------------------
# Status patch helpers
# ---------------------------------------------------------------------------

def agent_status_patch(control_plane: TenantControlPlane) -> dict:
    """
    Render status.addons.konnectivity.agent as a JSON merge patch.
    An empty status maps every key to None so the keys are removed.
    """
    agent = control_plane.status.addons.konnectivity.agent
    if agent.is_empty():
        body = {"name": None, "namespace": None, "lastUpdate": None}
    else:
        body = agent.model_dump(by_alias=True)
    return {"addons": {"konnectivity": {"agent": body}}}


def _apply_status(patch: kopf.Patch, control_plane: TenantControlPlane):
    for key, value in agent_status_patch(control_plane).items():
        patch.status[key] = value


# ---------------------------------------------------------------------------
# Reconcile pass
# ---------------------------------------------------------------------------

def reconcile_pass(control_plane: TenantControlPlane, patch: kopf.Patch, log: logging.Logger) -> str:
    """
    Run one full pass for a control plane and stage the status patch.
    Returns the operation performed: created, updated, unchanged, deleted or absent.
    """
    ref = f"{control_plane.namespace}/{control_plane.name}"
    agent = KonnectivityAgent(tenant_client_resolver)

    try:
        agent.define(control_plane)

        if agent.should_cleanup(control_plane):
            try:
                deleted = agent.clean_up(control_plane)
            finally:
                # Disablement always clears status, even when the delete failed.
                agent.update_tenant_control_plane_status(control_plane)
                _apply_status(patch, control_plane)
            operation = "deleted" if deleted else "absent"
        else:
            operation = agent.create_or_update(control_plane).value
            agent.update_tenant_control_plane_status(control_plane)
            _apply_status(patch, control_plane)

    except OperatorError as e:
        metrics.record_error(e)
        log.error(f"[{ref}] {agent.name} reconcile failed: {e}")
        events.publish_event(control_plane.namespace, control_plane.name,
                             "RECONCILE_FAILED", str(e)[:200], type(e).__name__)
        raise kopf.TemporaryError(f"{agent.name}: {e}", delay=RETRY_DELAY) from e

    metrics.record_pass(operation, "success")
    log.info(f"[{ref}] {agent.name} reconciled ({operation})")
    events.publish_event(control_plane.namespace, control_plane.name,
                         "RECONCILED", f"{agent.name} {operation}", operation)
    return operation


# ---------------------------------------------------------------------------
# Kopf operator settings
# ---------------------------------------------------------------------------

@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **kwargs):
    settings.posting.enabled = True
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(
        prefix="konnectivity.kamaji.clastix.io"
    )
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage(
        prefix="konnectivity.kamaji.clastix.io"
    )
    settings.networking.request_timeout = REQUEST_TIMEOUT
    settings.execution.max_workers = MAX_WORKERS

    start_http_server(METRICS_PORT)
    logger.info(
        f"Konnectivity Operator started (max_workers={MAX_WORKERS}, "
        f"resync={RESYNC_INTERVAL}s, metrics_port={METRICS_PORT})"
    )


# ---------------------------------------------------------------------------
# CREATE / UPDATE / RESUME handler
# ---------------------------------------------------------------------------

@kopf.on.create(CRD_GROUP, CRD_VERSION, CRD_PLURAL)
@kopf.on.update(CRD_GROUP, CRD_VERSION, CRD_PLURAL)
@kopf.on.resume(CRD_GROUP, CRD_VERSION, CRD_PLURAL)
def reconcile_konnectivity_agent(spec, status, name, namespace, patch, logger, **kwargs):
    """Converge the konnectivity agent of a TenantControlPlane to its spec."""
    control_plane = TenantControlPlane.from_body(name, namespace, spec, status)
    reconcile_pass(control_plane, patch, logger)


# ---------------------------------------------------------------------------
# TIMER — periodic resync
# ---------------------------------------------------------------------------

@kopf.timer(CRD_GROUP, CRD_VERSION, CRD_PLURAL, interval=RESYNC_INTERVAL, idle=RESYNC_INTERVAL)
def resync_konnectivity_agent(spec, status, name, namespace, patch, logger, **kwargs):
    """
    Periodic resync.

    Enabled add-ons are re-applied (create-or-update is a no-op without
    drift). Disabled add-ons only get a pass while status still shows the
    agent, i.e. the disablement has not been reflected yet.
    """
    control_plane = TenantControlPlane.from_body(name, namespace, spec, status)
    gate = KonnectivityAgent(tenant_client_resolver)

    if gate.should_cleanup(control_plane) and not gate.should_status_be_updated(control_plane):
        return

    reconcile_pass(control_plane, patch, logger)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    kopf.run(clusterwide=True)


if __name__ == "__main__":
    main()
