"""
Kubernetes service layer for the management cluster.

Loads the operator's own kubeconfig exactly once and hands out typed API
clients. Tenant clusters are reached through services.tenant_client.
"""

import logging
from typing import Optional

from kubernetes import client, config
from kubernetes.client import ApiException

from konnectivity_operator.config import settings
from konnectivity_operator.models import TenantControlPlane

logger = logging.getLogger("kubernetes_service")

_k8s_loaded = False


def _ensure_k8s():
    """Load Kubernetes config exactly once."""
    global _k8s_loaded
    if _k8s_loaded:
        return
    if settings.IN_CLUSTER:
        config.load_incluster_config()
    else:
        try:
            config.load_incluster_config()
        except config.ConfigException:
            config.load_kube_config(config_file=settings.KUBECONFIG or None)
    _k8s_loaded = True


def core_api() -> client.CoreV1Api:
    _ensure_k8s()
    return client.CoreV1Api()


def custom_api() -> client.CustomObjectsApi:
    _ensure_k8s()
    return client.CustomObjectsApi()


def _parse_control_plane(item: dict) -> TenantControlPlane:
    """Convert a raw TenantControlPlane dict into the model."""
    meta = item.get("metadata", {})
    return TenantControlPlane.from_body(
        name=meta["name"],
        namespace=meta.get("namespace", "default"),
        spec=item.get("spec"),
        status=item.get("status"),
    )


def list_control_planes(
    namespace: Optional[str] = None,
    api: Optional[client.CustomObjectsApi] = None,
) -> list[TenantControlPlane]:
    """List TenantControlPlanes cluster-wide, or in a single namespace."""
    api = api or custom_api()
    if namespace:
        result = api.list_namespaced_custom_object(
            settings.CRD_GROUP, settings.CRD_VERSION, namespace, settings.CRD_PLURAL
        )
    else:
        result = api.list_cluster_custom_object(
            settings.CRD_GROUP, settings.CRD_VERSION, settings.CRD_PLURAL
        )
    return [_parse_control_plane(item) for item in result.get("items", [])]


def get_control_plane(
    namespace: str,
    name: str,
    api: Optional[client.CustomObjectsApi] = None,
) -> Optional[TenantControlPlane]:
    """Get a single TenantControlPlane, None if it does not exist."""
    api = api or custom_api()
    try:
        item = api.get_namespaced_custom_object(
            settings.CRD_GROUP, settings.CRD_VERSION, namespace, settings.CRD_PLURAL, name
        )
        return _parse_control_plane(item)
    except ApiException as e:
        if e.status == 404:
            return None
        raise
