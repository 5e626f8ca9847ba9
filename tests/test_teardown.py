"""
Post-delete teardown job tests
"""

import pytest
from kubernetes.client import ApiException

from konnectivity_operator import teardown


class FakeCoreApi:
    def __init__(self, existing, error=None):
        self.existing = set(existing)
        self.error = error

    def delete_namespaced_secret(self, name, namespace, **kwargs):
        if self.error:
            raise self.error
        if (namespace, name) not in self.existing:
            raise ApiException(status=404, reason="Not Found")
        self.existing.remove((namespace, name))


def test_deletes_both_secrets():
    api = FakeCoreApi({("kamaji-system", "etcd-certs"), ("kamaji-system", "root-client-certs")})

    deleted = teardown.teardown("kamaji-system", ["etcd-certs", "root-client-certs"], api)

    assert deleted == ["etcd-certs", "root-client-certs"]
    assert api.existing == set()


def test_already_absent_is_fine():
    api = FakeCoreApi({("kamaji-system", "root-client-certs")})

    assert teardown.teardown("kamaji-system", ["etcd-certs", "root-client-certs"], api) == ["root-client-certs"]
    assert teardown.teardown("kamaji-system", ["etcd-certs", "root-client-certs"], api) == []


def test_other_errors_propagate():
    api = FakeCoreApi(set(), error=ApiException(status=403, reason="Forbidden"))

    with pytest.raises(ApiException):
        teardown.delete_secret("etcd-certs", "kamaji-system", api)


def test_main_exit_codes(monkeypatch):
    monkeypatch.setattr(teardown, "core_api", lambda: FakeCoreApi(set()))
    assert teardown.main() == 0

    monkeypatch.setattr(teardown, "core_api", lambda: FakeCoreApi(set(), error=ApiException(status=500)))
    assert teardown.main() == 1
