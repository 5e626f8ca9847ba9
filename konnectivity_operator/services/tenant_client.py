"""
Tenant client resolver.

A TenantControlPlane publishes its admin kubeconfig in a Secret next to it
(status.kubeconfig.admin.secretName, key admin.conf). The resolver reads
that Secret from the management cluster and builds an API client bound to
the tenant's own cluster.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Optional

import yaml
from kubernetes import client, config
from kubernetes.client import ApiException
from urllib3.exceptions import HTTPError

from konnectivity_operator.errors import ResolutionError
from konnectivity_operator.models import TenantControlPlane
from konnectivity_operator.services.kubernetes_service import core_api

logger = logging.getLogger("tenant_client")

ADMIN_KUBECONFIG_KEY = "admin.conf"


@dataclass
class TenantClient:
    api_client: client.ApiClient

    @property
    def apps(self) -> client.AppsV1Api:
        return client.AppsV1Api(self.api_client)


class TenantClientResolver:
    """Resolve a TenantClient from a control plane's admin kubeconfig secret."""

    def __init__(self, core: Optional[client.CoreV1Api] = None):
        self._core = core

    def resolve(self, control_plane: TenantControlPlane) -> TenantClient:
        secret_name = control_plane.status.kubeconfig.admin.secret_name
        if not secret_name:
            raise ResolutionError(
                f"admin kubeconfig of {control_plane.namespace}/{control_plane.name} is not yet generated"
            )

        try:
            core = self._core or core_api()
        except (config.ConfigException, OSError) as e:
            raise ResolutionError(f"management cluster configuration unavailable: {e}") from e

        try:
            secret = core.read_namespaced_secret(name=secret_name, namespace=control_plane.namespace)
        except ApiException as e:
            raise ResolutionError(
                f"cannot read admin kubeconfig secret {control_plane.namespace}/{secret_name}: "
                f"{e.status} {e.reason}"
            ) from e
        except HTTPError as e:
            raise ResolutionError(
                f"cannot read admin kubeconfig secret {control_plane.namespace}/{secret_name}: {e}"
            ) from e

        encoded = (secret.data or {}).get(ADMIN_KUBECONFIG_KEY)
        if not encoded:
            raise ResolutionError(f"secret {control_plane.namespace}/{secret_name} has no {ADMIN_KUBECONFIG_KEY} key")

        try:
            kubeconfig = yaml.safe_load(base64.b64decode(encoded))
            api_client = config.new_client_from_config_dict(kubeconfig)
        except (binascii.Error, yaml.YAMLError, config.ConfigException, TypeError) as e:
            raise ResolutionError(f"invalid admin kubeconfig in {control_plane.namespace}/{secret_name}: {e}") from e

        logger.debug(f"Resolved tenant client for {control_plane.namespace}/{control_plane.name}")
        return TenantClient(api_client)

    __call__ = resolve
