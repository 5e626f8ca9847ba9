"""
Kopf handler tests. Handlers are called directly with a kopf.Patch.
"""

import logging

import kopf
import pytest
from kubernetes.client import ApiException
from prometheus_client import REGISTRY
from urllib3.exceptions import MaxRetryError

from konnectivity_operator import events, operator
from konnectivity_operator.config import Settings
from konnectivity_operator.errors import ResolutionError

log = logging.getLogger("test-operator")

KEY = ("kube-system", "konnectivity-agent")
POPULATED = {"name": "konnectivity-agent", "namespace": "kube-system", "lastUpdate": "2026-01-01T00:00:00Z"}


@pytest.fixture(autouse=True)
def resolver(monkeypatch, tenant_client):
    monkeypatch.setattr(operator, "tenant_client_resolver", lambda control_plane: tenant_client)


def _body(control_plane):
    dumped = control_plane.model_dump(by_alias=True, exclude_none=True)
    return dumped["spec"], dumped["status"]


def _run(handler, control_plane):
    spec, status = _body(control_plane)
    patch = kopf.Patch()
    handler(spec=spec, status=status, name=control_plane.name, namespace=control_plane.namespace,
            patch=patch, logger=log)
    return patch


def _agent_patch(patch):
    return patch["status"]["addons"]["konnectivity"]["agent"]


def test_enabled_pass_creates_and_reports(make_control_plane, fake_apps):
    patch = _run(operator.reconcile_konnectivity_agent, make_control_plane())

    agent_status = _agent_patch(patch)
    assert agent_status["name"] == "konnectivity-agent"
    assert agent_status["namespace"] == "kube-system"
    assert agent_status["lastUpdate"]
    assert KEY in fake_apps.objects


def test_disabled_pass_deletes_and_clears(make_control_plane, fake_apps):
    _run(operator.reconcile_konnectivity_agent, make_control_plane())

    patch = _run(operator.reconcile_konnectivity_agent,
                 make_control_plane(enabled=False, agent_status=POPULATED))

    assert _agent_patch(patch) == {"name": None, "namespace": None, "lastUpdate": None}
    assert KEY not in fake_apps.objects
    assert ("delete", "kube-system", "konnectivity-agent") in fake_apps.calls


def test_disabled_pass_when_already_gone(make_control_plane, fake_apps):
    patch = _run(operator.reconcile_konnectivity_agent, make_control_plane(enabled=False))

    assert _agent_patch(patch) == {"name": None, "namespace": None, "lastUpdate": None}


def test_failed_delete_still_clears_status(make_control_plane, fake_apps):
    fake_apps.errors["delete"] = ApiException(status=500, reason="Internal Server Error")
    spec, status = _body(make_control_plane(enabled=False, agent_status=POPULATED))
    patch = kopf.Patch()

    with pytest.raises(kopf.TemporaryError):
        operator.reconcile_konnectivity_agent(spec=spec, status=status, name="tenant-a", namespace="tenants",
                                              patch=patch, logger=log)
    assert _agent_patch(patch) == {"name": None, "namespace": None, "lastUpdate": None}


def test_unresolved_address_leaves_status_untouched(make_control_plane, fake_apps):
    spec, status = _body(make_control_plane(endpoint=""))
    patch = kopf.Patch()

    with pytest.raises(kopf.TemporaryError):
        operator.reconcile_konnectivity_agent(spec=spec, status=status, name="tenant-a", namespace="tenants",
                                              patch=patch, logger=log)
    assert "status" not in patch
    assert fake_apps.writes() == []


def test_resolution_error_attempts_nothing(monkeypatch, make_control_plane, fake_apps):
    def unreachable(control_plane):
        raise ResolutionError("tenant cluster unreachable")

    monkeypatch.setattr(operator, "tenant_client_resolver", unreachable)
    spec, status = _body(make_control_plane())
    patch = kopf.Patch()

    with pytest.raises(kopf.TemporaryError):
        operator.reconcile_konnectivity_agent(spec=spec, status=status, name="tenant-a", namespace="tenants",
                                              patch=patch, logger=log)
    assert "status" not in patch
    assert fake_apps.calls == []


def test_resync_skips_reflected_disablement(make_control_plane, fake_apps):
    patch = _run(operator.resync_konnectivity_agent, make_control_plane(enabled=False))

    assert "status" not in patch
    assert fake_apps.calls == []


def test_resync_clears_unreflected_disablement(make_control_plane, fake_apps):
    patch = _run(operator.resync_konnectivity_agent, make_control_plane(enabled=False, agent_status=POPULATED))

    assert _agent_patch(patch) == {"name": None, "namespace": None, "lastUpdate": None}


def test_resync_reapplies_enabled_addon(make_control_plane, fake_apps):
    _run(operator.reconcile_konnectivity_agent, make_control_plane())
    fake_apps.objects[KEY].spec.template.spec.containers[0].image = "drifted:v0"

    _run(operator.resync_konnectivity_agent, make_control_plane())

    assert fake_apps.objects[KEY].spec.template.spec.containers[0].image == "agent:v1"


def test_reconcile_pass_reports_operation(make_control_plane):
    control_plane = make_control_plane()

    assert operator.reconcile_pass(control_plane, kopf.Patch(), log) == "created"
    assert operator.reconcile_pass(make_control_plane(), kopf.Patch(), log) == "unchanged"
    assert operator.reconcile_pass(make_control_plane(enabled=False), kopf.Patch(), log) == "deleted"
    assert operator.reconcile_pass(make_control_plane(enabled=False), kopf.Patch(), log) == "absent"


def _store_errors():
    return REGISTRY.get_sample_value(
        "konnectivity_operator_reconcile_errors_total", {"error": "StoreError"}
    ) or 0.0


def test_unreachable_tenant_api_is_retried_with_delay(make_control_plane, fake_apps):
    fake_apps.errors["read"] = MaxRetryError(None, "/apis/apps/v1/namespaces/kube-system/daemonsets")
    before = _store_errors()
    patch = kopf.Patch()

    with pytest.raises(kopf.TemporaryError) as exc_info:
        operator.reconcile_pass(make_control_plane(), patch, log)
    assert exc_info.value.delay == operator.RETRY_DELAY
    assert _store_errors() == before + 1
    assert "status" not in patch


def test_malformed_redis_url_does_not_fail_the_pass(monkeypatch, make_control_plane, fake_apps):
    monkeypatch.setattr(events, "settings", Settings(REDIS_URL="redis-host:6379"))
    monkeypatch.setattr(events, "_redis_client", None)

    patch = kopf.Patch()
    assert operator.reconcile_pass(make_control_plane(), patch, log) == "created"
    assert _agent_patch(patch)["name"] == "konnectivity-agent"
    assert events.recent_events("tenants", "tenant-a") == []
