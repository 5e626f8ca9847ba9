"""
Pydantic models for API responses.
"""
from pydantic import BaseModel
from typing import Optional, List

from konnectivity_operator.models import Enabled, TenantControlPlane


class AgentStatusResponse(BaseModel):
    """Konnectivity agent state of one tenant control plane."""
    name: str
    namespace: str
    enabled: bool
    image: Optional[str] = None
    serverPort: Optional[int] = None
    controlPlaneEndpoint: Optional[str] = None
    agentName: Optional[str] = None
    agentNamespace: Optional[str] = None
    lastUpdate: Optional[str] = None

    @classmethod
    def from_control_plane(cls, control_plane: TenantControlPlane) -> "AgentStatusResponse":
        addon = control_plane.spec.konnectivity_addon()
        agent = control_plane.status.addons.konnectivity.agent
        response = cls(
            name=control_plane.name,
            namespace=control_plane.namespace,
            enabled=isinstance(addon, Enabled),
            controlPlaneEndpoint=control_plane.status.control_plane_endpoint or None,
            agentName=agent.name or None,
            agentNamespace=agent.namespace or None,
            lastUpdate=agent.last_update,
        )
        if isinstance(addon, Enabled):
            response.image = f"{addon.config.agent.image}:{addon.config.agent.version}"
            response.serverPort = addon.config.server.port
        return response


class AgentStatusListResponse(BaseModel):
    items: List[AgentStatusResponse]
    total: int


class EventEntry(BaseModel):
    timestamp: str = ""
    type: str = ""
    message: str = ""
    result: str = ""


class ErrorResponse(BaseModel):
    detail: str
    code: str = "UNKNOWN_ERROR"
