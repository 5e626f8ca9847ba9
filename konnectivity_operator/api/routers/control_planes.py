"""
Read-only routes over the konnectivity agent status of TenantControlPlanes.

Features:
  - Agent status per tenant control plane, straight from the CRD status
  - Rate limiting per-IP via slowapi
  - Recent reconcile events from the Redis Stream (if connected)
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from konnectivity_operator import events, metrics
from konnectivity_operator.api.models import (
    AgentStatusListResponse,
    AgentStatusResponse,
    ErrorResponse,
    EventEntry,
)
from konnectivity_operator.config import settings
from konnectivity_operator.services.kubernetes_service import get_control_plane, list_control_planes

logger = logging.getLogger("control_planes")

router = APIRouter(prefix="/tenantcontrolplanes", tags=["tenantcontrolplanes"])
limiter = Limiter(key_func=get_remote_address)


def update_gauges():
    """Refresh the agent state gauge from the current TenantControlPlanes."""
    counts = {"enabled": 0, "disabled": 0, "pending": 0}
    for control_plane in list_control_planes():
        status = AgentStatusResponse.from_control_plane(control_plane)
        if not status.enabled:
            counts["disabled"] += 1
        elif status.agentName:
            counts["enabled"] += 1
        else:
            counts["pending"] += 1
    for state, value in counts.items():
        metrics.AGENTS_TOTAL.labels(state=state).set(value)


# =========================================================================
# REST Endpoints
# =========================================================================

@router.get("", response_model=AgentStatusListResponse)
@limiter.limit(settings.RATE_LIMIT)
async def list_agents_endpoint(
    request: Request,
    namespace: Optional[str] = Query(None, description="Filter by namespace"),
):
    """List the konnectivity agent status of all tenant control planes."""
    items = [AgentStatusResponse.from_control_plane(cp) for cp in list_control_planes(namespace=namespace)]
    return AgentStatusListResponse(items=items, total=len(items))


@router.get("/{namespace}/{name}", response_model=AgentStatusResponse,
            responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def get_agent_endpoint(namespace: str, name: str, request: Request):
    """Get the konnectivity agent status of one tenant control plane."""
    control_plane = get_control_plane(namespace, name)
    if not control_plane:
        raise HTTPException(status_code=404, detail=f"TenantControlPlane '{namespace}/{name}' not found")
    return AgentStatusResponse.from_control_plane(control_plane)


@router.get("/{namespace}/{name}/events", responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def get_agent_events(namespace: str, name: str, request: Request):
    """Recent reconcile events of one tenant control plane (empty without Redis)."""
    if not get_control_plane(namespace, name):
        raise HTTPException(status_code=404, detail=f"TenantControlPlane '{namespace}/{name}' not found")
    entries = [EventEntry(**{k: v for k, v in e.items() if k in EventEntry.model_fields})
               for e in events.recent_events(namespace, name)]
    return {"tenantControlPlane": f"{namespace}/{name}", "events": entries}
