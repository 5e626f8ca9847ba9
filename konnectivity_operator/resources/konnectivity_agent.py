"""
Konnectivity agent reconciler.

Owns the konnectivity-agent DaemonSet inside a tenant cluster. One instance
is built per reconcile pass; the operator calls, in order:

    define() -> create_or_update() | clean_up() -> update_tenant_control_plane_status()

The DaemonSet lives in kube-system of the tenant cluster under a fixed
name, so there is exactly one per tenant control plane.
"""

import logging
from typing import Callable, Optional

from kubernetes import client

from konnectivity_operator.errors import AddressResolutionError, ResolutionError, StoreError
from konnectivity_operator.models import (
    Disabled,
    Enabled,
    ExternalKubernetesObjectStatus,
    KonnectivitySpec,
    TenantControlPlane,
)
from konnectivity_operator.services import store
from konnectivity_operator.services.store import OperationResult
from konnectivity_operator.services.tenant_client import TenantClient
from konnectivity_operator.utilities import (
    args_from_list_to_map,
    args_from_map_to_list,
    kamaji_labels,
    merge_maps,
    utc_now,
)

logger = logging.getLogger("konnectivity_agent")

AGENT_NAME = "konnectivity-agent"
AGENT_NAMESPACE = "kube-system"
AGENT_TOKEN_NAME = "konnectivity-agent-token"
AGENT_COMMAND = "/proxy-agent"
SELECTOR_LABEL = "k8s-app"

TOKEN_MOUNT_PATH = "/var/run/secrets/tokens"
TOKEN_EXPIRATION_SECONDS = 3600
TOKEN_DEFAULT_MODE = 420  # 0644
CA_CERT_PATH = "/var/run/secrets/kubernetes.io/serviceaccount/ca.crt"

ADMIN_SERVER_PORT = 8133
HEALTH_SERVER_PORT = 8134

PRIORITY_CLASS_NAME = "system-cluster-critical"

TenantClientResolverFn = Callable[[TenantControlPlane], TenantClient]


class KonnectivityAgent:
    """Lifecycle of the konnectivity-agent DaemonSet for a single pass."""

    name = AGENT_NAME

    def __init__(self, resolve_tenant_client: TenantClientResolverFn):
        self._resolve_tenant_client = resolve_tenant_client
        self.resource: Optional[client.V1DaemonSet] = None
        self.tenant_client: Optional[TenantClient] = None

    # -----------------------------------------------------------------
    # Gating predicates
    # -----------------------------------------------------------------

    def should_cleanup(self, control_plane: TenantControlPlane) -> bool:
        return isinstance(control_plane.spec.konnectivity_addon(), Disabled)

    def should_status_be_updated(self, control_plane: TenantControlPlane) -> bool:
        """Add-on disabled but the agent is still recorded in status."""
        if not isinstance(control_plane.spec.konnectivity_addon(), Disabled):
            return False
        return not control_plane.status.addons.konnectivity.agent.is_empty()

    # -----------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------

    def define(self, control_plane: TenantControlPlane) -> TenantClient:
        self.resource = client.V1DaemonSet(
            metadata=client.V1ObjectMeta(name=AGENT_NAME, namespace=AGENT_NAMESPACE),
            spec=client.V1DaemonSetSpec(
                selector=client.V1LabelSelector(),
                template=client.V1PodTemplateSpec(),
            ),
        )
        try:
            self.tenant_client = self._resolve_tenant_client(control_plane)
        except ResolutionError as e:
            logger.error(f"[{self.name}] unable to retrieve the Tenant Control Plane client: {e}")
            raise
        return self.tenant_client

    def create_or_update(self, control_plane: TenantControlPlane) -> OperationResult:
        addon = control_plane.spec.konnectivity_addon()
        if isinstance(addon, Disabled):
            return OperationResult.NONE

        result, self.resource = store.create_or_update(
            self.tenant_client.apps,
            self.resource,
            lambda daemon_set: self._mutate(daemon_set, control_plane, addon),
        )
        return result

    def clean_up(self, control_plane: TenantControlPlane) -> bool:
        try:
            return store.delete_if_exists(
                self.tenant_client.apps,
                self.resource.metadata.name,
                self.resource.metadata.namespace,
            )
        except StoreError as e:
            logger.error(f"[{self.name}] cannot delete the requested resource: {e}")
            raise

    def update_tenant_control_plane_status(self, control_plane: TenantControlPlane):
        konnectivity = control_plane.status.addons.konnectivity
        if isinstance(control_plane.spec.konnectivity_addon(), Enabled):
            konnectivity.agent = ExternalKubernetesObjectStatus(
                name=self.resource.metadata.name,
                namespace=self.resource.metadata.namespace,
                last_update=utc_now(),
            )
            return

        konnectivity.agent = ExternalKubernetesObjectStatus()

    # -----------------------------------------------------------------
    # Desired state
    # -----------------------------------------------------------------

    def _mutate(self, daemon_set: client.V1DaemonSet, control_plane: TenantControlPlane, addon: Enabled):
        try:
            address, _ = control_plane.assigned_control_plane_address()
        except AddressResolutionError as e:
            logger.error(f"[{self.name}] unable to retrieve the Tenant Control Plane address: {e}")
            raise

        konnectivity: KonnectivitySpec = addon.config

        daemon_set.metadata.labels = kamaji_labels(control_plane.name, self.name)

        if daemon_set.spec is None:
            daemon_set.spec = client.V1DaemonSetSpec(
                selector=client.V1LabelSelector(),
                template=client.V1PodTemplateSpec(),
            )
        ds_spec = daemon_set.spec
        if ds_spec.selector is None:
            ds_spec.selector = client.V1LabelSelector()
        ds_spec.selector.match_labels = {SELECTOR_LABEL: AGENT_NAME}

        if ds_spec.template is None:
            ds_spec.template = client.V1PodTemplateSpec()
        template = ds_spec.template
        if template.metadata is None:
            template.metadata = client.V1ObjectMeta()
        template.metadata.labels = merge_maps(template.metadata.labels, {SELECTOR_LABEL: AGENT_NAME})

        if template.spec is None:
            template.spec = client.V1PodSpec(containers=[])
        pod_spec = template.spec
        pod_spec.priority_class_name = PRIORITY_CLASS_NAME
        pod_spec.tolerations = [
            client.V1Toleration(key="CriticalAddonsOnly", operator="Exists"),
        ]
        pod_spec.node_selector = {"kubernetes.io/os": "linux"}
        pod_spec.service_account_name = AGENT_NAME
        pod_spec.volumes = [
            client.V1Volume(
                name=AGENT_TOKEN_NAME,
                projected=client.V1ProjectedVolumeSource(
                    sources=[
                        client.V1VolumeProjection(
                            service_account_token=client.V1ServiceAccountTokenProjection(
                                path=AGENT_TOKEN_NAME,
                                audience=control_plane.status.addons.konnectivity.cluster_role_binding.name,
                                expiration_seconds=TOKEN_EXPIRATION_SECONDS,
                            ),
                        ),
                    ],
                    default_mode=TOKEN_DEFAULT_MODE,
                ),
            ),
        ]

        if not pod_spec.containers or len(pod_spec.containers) != 1:
            pod_spec.containers = [client.V1Container(name=AGENT_NAME)]
        container = pod_spec.containers[0]

        container.image = f"{konnectivity.agent.image}:{konnectivity.agent.version}"
        container.name = AGENT_NAME
        container.command = [AGENT_COMMAND]
        container.args = agent_args(konnectivity, address)
        container.volume_mounts = [
            client.V1VolumeMount(mount_path=TOKEN_MOUNT_PATH, name=AGENT_TOKEN_NAME),
        ]
        container.liveness_probe = client.V1Probe(
            http_get=client.V1HTTPGetAction(
                path="/healthz",
                port=HEALTH_SERVER_PORT,
                scheme="HTTP",
            ),
            initial_delay_seconds=15,
            timeout_seconds=15,
            period_seconds=10,
            success_threshold=1,
            failure_threshold=3,
        )


def agent_args(konnectivity: KonnectivitySpec, address: str) -> list[str]:
    """User extra args first, then the mandatory flags, so the latter always win."""
    args = args_from_list_to_map(konnectivity.agent.extra_args)

    args["-v"] = "8"
    args["--logtostderr"] = "true"
    args["--ca-cert"] = CA_CERT_PATH
    args["--proxy-server-host"] = address
    args["--proxy-server-port"] = str(konnectivity.server.port)
    args["--admin-server-port"] = str(ADMIN_SERVER_PORT)
    args["--health-server-port"] = str(HEALTH_SERVER_PORT)
    args["--service-account-token-path"] = f"{TOKEN_MOUNT_PATH}/{AGENT_TOKEN_NAME}"

    return args_from_map_to_list(args)
