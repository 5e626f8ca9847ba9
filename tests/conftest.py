"""
Shared fixtures: in-memory stand-ins for the Kubernetes APIs and a
TenantControlPlane factory.
"""

import copy

import pytest
from kubernetes import client
from kubernetes.client import ApiException

from konnectivity_operator.models import TenantControlPlane
from konnectivity_operator.resources.konnectivity_agent import KonnectivityAgent


class FakeAppsApi:
    """Minimal AppsV1Api keeping DaemonSets in a dict, with resourceVersion checks."""

    def __init__(self):
        self.objects = {}
        self.calls = []
        self.errors = {}
        self.after_read = None
        self._rv = 0

    def _fail(self, method):
        if method in self.errors:
            raise self.errors[method]

    def _bump(self, obj):
        self._rv += 1
        obj.metadata.resource_version = str(self._rv)

    def read_namespaced_daemon_set(self, name, namespace, **kwargs):
        self.calls.append(("read", namespace, name))
        self._fail("read")
        key = (namespace, name)
        if key not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        result = copy.deepcopy(self.objects[key])
        if self.after_read:
            self.after_read(self.objects[key])
        return result

    def create_namespaced_daemon_set(self, namespace, body, **kwargs):
        self.calls.append(("create", namespace, body.metadata.name))
        self._fail("create")
        key = (namespace, body.metadata.name)
        if key in self.objects:
            raise ApiException(status=409, reason="AlreadyExists")
        stored = copy.deepcopy(body)
        self._bump(stored)
        self.objects[key] = stored
        return copy.deepcopy(stored)

    def replace_namespaced_daemon_set(self, name, namespace, body, **kwargs):
        self.calls.append(("replace", namespace, name))
        self._fail("replace")
        key = (namespace, name)
        if key not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        if body.metadata.resource_version != self.objects[key].metadata.resource_version:
            raise ApiException(status=409, reason="Conflict")
        stored = copy.deepcopy(body)
        self._bump(stored)
        self.objects[key] = stored
        return copy.deepcopy(stored)

    def delete_namespaced_daemon_set(self, name, namespace, **kwargs):
        self.calls.append(("delete", namespace, name))
        self._fail("delete")
        key = (namespace, name)
        if key not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        del self.objects[key]
        return client.V1Status(status="Success")

    def writes(self):
        return [c[0] for c in self.calls if c[0] != "read"]


class FakeTenantClient:
    def __init__(self, apps):
        self.apps = apps


@pytest.fixture
def fake_apps():
    return FakeAppsApi()


@pytest.fixture
def tenant_client(fake_apps):
    return FakeTenantClient(fake_apps)


@pytest.fixture
def agent(tenant_client):
    return KonnectivityAgent(lambda control_plane: tenant_client)


@pytest.fixture
def make_control_plane():
    def _make(
        enabled=True,
        image="agent",
        version="v1",
        port=8132,
        extra_args=None,
        endpoint="10.0.0.10:6443",
        audience="konnectivity-agent",
        agent_status=None,
        name="tenant-a",
        namespace="tenants",
    ):
        spec = {}
        if enabled:
            spec = {
                "addons": {
                    "konnectivity": {
                        "server": {"port": port},
                        "agent": {"image": image, "version": version, "extraArgs": extra_args or []},
                    }
                }
            }
        status = {
            "controlPlaneEndpoint": endpoint,
            "kubeconfig": {"admin": {"secretName": "tenant-a-admin-kubeconfig"}},
            "addons": {
                "konnectivity": {
                    "clusterrolebinding": {"name": audience},
                    "agent": agent_status or {},
                }
            },
        }
        return TenantControlPlane.from_body(name, namespace, spec, status)

    return _make
