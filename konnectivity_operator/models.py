"""
Pydantic models for the TenantControlPlane custom resource.

Only the fields the konnectivity agent reconciler reads or writes are
modelled; everything else in the object is ignored on parse.
"""
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from konnectivity_operator.errors import AddressResolutionError

DEFAULT_AGENT_IMAGE = "registry.k8s.io/kas-network-proxy/proxy-agent"
DEFAULT_AGENT_VERSION = "v0.0.32"
DEFAULT_SERVER_PORT = 8132


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Spec
# ---------------------------------------------------------------------------

class KonnectivityAgentSpec(_CamelModel):
    image: str = DEFAULT_AGENT_IMAGE
    version: str = DEFAULT_AGENT_VERSION
    extra_args: List[str] = Field(default_factory=list, alias="extraArgs")

    @field_validator("extra_args", mode="before")
    @classmethod
    def _null_args(cls, value):
        return [] if value is None else value


class KonnectivityServerSpec(_CamelModel):
    port: int = DEFAULT_SERVER_PORT


class KonnectivitySpec(_CamelModel):
    server: KonnectivityServerSpec = Field(default_factory=KonnectivityServerSpec)
    agent: KonnectivityAgentSpec = Field(default_factory=KonnectivityAgentSpec)


class AddonsSpec(_CamelModel):
    konnectivity: Optional[KonnectivitySpec] = None


@dataclass(frozen=True)
class Enabled:
    config: KonnectivitySpec


@dataclass(frozen=True)
class Disabled:
    pass


AddonState = Union[Enabled, Disabled]


class ControlPlaneSpec(_CamelModel):
    addons: AddonsSpec = Field(default_factory=AddonsSpec)

    def konnectivity_addon(self) -> AddonState:
        """Presence of spec.addons.konnectivity is the enabled/disabled switch."""
        if self.addons.konnectivity is None:
            return Disabled()
        return Enabled(self.addons.konnectivity)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

class ExternalKubernetesObjectStatus(_CamelModel):
    name: str = ""
    namespace: str = ""
    last_update: Optional[str] = Field(default=None, alias="lastUpdate")

    def is_empty(self) -> bool:
        return not self.name and not self.namespace and self.last_update is None


class KonnectivityStatus(_CamelModel):
    agent: ExternalKubernetesObjectStatus = Field(default_factory=ExternalKubernetesObjectStatus)
    cluster_role_binding: ExternalKubernetesObjectStatus = Field(
        default_factory=ExternalKubernetesObjectStatus, alias="clusterrolebinding"
    )


class AddonsStatus(_CamelModel):
    konnectivity: KonnectivityStatus = Field(default_factory=KonnectivityStatus)


class SecretReference(_CamelModel):
    secret_name: str = Field(default="", alias="secretName")


class KubeconfigStatus(_CamelModel):
    admin: SecretReference = Field(default_factory=SecretReference)


class ControlPlaneStatus(_CamelModel):
    control_plane_endpoint: str = Field(default="", alias="controlPlaneEndpoint")
    kubeconfig: KubeconfigStatus = Field(default_factory=KubeconfigStatus)
    addons: AddonsStatus = Field(default_factory=AddonsStatus)


# ---------------------------------------------------------------------------
# TenantControlPlane
# ---------------------------------------------------------------------------

class ObjectMeta(_CamelModel):
    name: str
    namespace: str = "default"


class TenantControlPlane(_CamelModel):
    metadata: ObjectMeta
    spec: ControlPlaneSpec = Field(default_factory=ControlPlaneSpec)
    status: ControlPlaneStatus = Field(default_factory=ControlPlaneStatus)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @classmethod
    def from_body(
        cls,
        name: str,
        namespace: str,
        spec: Optional[Mapping[str, Any]],
        status: Optional[Mapping[str, Any]],
    ) -> "TenantControlPlane":
        """Build the model from the pieces kopf hands to a handler."""
        return cls.model_validate({
            "metadata": {"name": name, "namespace": namespace},
            "spec": dict(spec or {}),
            "status": dict(status or {}),
        })

    def assigned_control_plane_address(self) -> Tuple[str, int]:
        """
        Split status.controlPlaneEndpoint into (address, port).
        Raises AddressResolutionError while the control plane is not exposed.
        """
        endpoint = self.status.control_plane_endpoint
        if not endpoint:
            raise AddressResolutionError(
                f"the Tenant Control Plane {self.namespace}/{self.name} is not yet exposed"
            )
        host, sep, port = endpoint.rpartition(":")
        if not sep or not host:
            raise AddressResolutionError(
                f"cannot split host port from Tenant Control Plane endpoint '{endpoint}'"
            )
        if host.startswith("[") and host.endswith("]"):
            host = host[1:-1]
        try:
            return host, int(port)
        except ValueError:
            raise AddressResolutionError(
                f"invalid port in Tenant Control Plane endpoint '{endpoint}'"
            ) from None
