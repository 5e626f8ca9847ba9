"""
Create-or-update primitive for DaemonSets in a tenant cluster.

Read-modify-write: the stored object is read by identity, the mutate
function is applied to it, and it is written back only when the mutation
changed something. The replace carries the resourceVersion that was read,
so a concurrent external edit surfaces as a 409 conflict instead of being
silently overwritten.
"""

import logging
from enum import Enum
from typing import Callable, Tuple

from kubernetes import client
from kubernetes.client import ApiException
from urllib3.exceptions import HTTPError

from konnectivity_operator.config import settings
from konnectivity_operator.errors import StoreError

logger = logging.getLogger("store")

MutateFn = Callable[[client.V1DaemonSet], None]


class OperationResult(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    NONE = "unchanged"


def create_or_update(
    apps: client.AppsV1Api,
    daemon_set: client.V1DaemonSet,
    mutate: MutateFn,
) -> Tuple[OperationResult, client.V1DaemonSet]:
    """
    Converge the stored DaemonSet identified by daemon_set.metadata.

    Returns the operation performed and the object as stored afterwards.
    Any exception raised by mutate aborts the call before anything is written.
    """
    name = daemon_set.metadata.name
    namespace = daemon_set.metadata.namespace

    try:
        current = apps.read_namespaced_daemon_set(
            name=name, namespace=namespace, _request_timeout=settings.REQUEST_TIMEOUT
        )
    except HTTPError as e:
        raise StoreError.from_transport_error(f"read daemonset {namespace}/{name}", e) from e
    except ApiException as e:
        if e.status != 404:
            raise StoreError.from_api_exception(f"read daemonset {namespace}/{name}", e) from e

        mutate(daemon_set)
        _check_identity(daemon_set, name, namespace)
        try:
            created = apps.create_namespaced_daemon_set(
                namespace=namespace, body=daemon_set, _request_timeout=settings.REQUEST_TIMEOUT
            )
        except ApiException as e:
            raise StoreError.from_api_exception(f"create daemonset {namespace}/{name}", e) from e
        except HTTPError as e:
            raise StoreError.from_transport_error(f"create daemonset {namespace}/{name}", e) from e
        logger.info(f"DaemonSet {namespace}/{name} created")
        return OperationResult.CREATED, created

    before = current.to_dict()
    mutate(current)
    _check_identity(current, name, namespace)
    if current.to_dict() == before:
        logger.debug(f"DaemonSet {namespace}/{name} already up to date")
        return OperationResult.NONE, current

    try:
        updated = apps.replace_namespaced_daemon_set(
            name=name, namespace=namespace, body=current, _request_timeout=settings.REQUEST_TIMEOUT
        )
    except ApiException as e:
        raise StoreError.from_api_exception(f"update daemonset {namespace}/{name}", e) from e
    except HTTPError as e:
        raise StoreError.from_transport_error(f"update daemonset {namespace}/{name}", e) from e
    logger.info(f"DaemonSet {namespace}/{name} updated")
    return OperationResult.UPDATED, updated


def delete_if_exists(apps: client.AppsV1Api, name: str, namespace: str) -> bool:
    """Delete a DaemonSet. Returns True if deleted, False if it was already gone."""
    try:
        apps.delete_namespaced_daemon_set(
            name=name, namespace=namespace, _request_timeout=settings.REQUEST_TIMEOUT
        )
    except ApiException as e:
        if e.status == 404:
            logger.info(f"DaemonSet {namespace}/{name} already gone")
            return False
        raise StoreError.from_api_exception(f"delete daemonset {namespace}/{name}", e) from e
    except HTTPError as e:
        raise StoreError.from_transport_error(f"delete daemonset {namespace}/{name}", e) from e
    logger.info(f"DaemonSet {namespace}/{name} deletion initiated")
    return True


def _check_identity(daemon_set: client.V1DaemonSet, name: str, namespace: str):
    if daemon_set.metadata.name != name or daemon_set.metadata.namespace != namespace:
        raise ValueError("mutate function must not change the object name or namespace")
