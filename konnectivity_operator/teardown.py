"""
Post-delete teardown job.

Run once by the packaging post-delete hook after the release is removed:
deletes the datastore CA secret and the datastore client secret from the
release namespace. Secrets that are already gone are skipped, so the job can
be re-run safely.
"""

import logging
import sys
from typing import Iterable, Optional

from kubernetes import client
from kubernetes.client import ApiException

from konnectivity_operator.config import settings
from konnectivity_operator.services.kubernetes_service import core_api

logger = logging.getLogger("teardown")


def delete_secret(name: str, namespace: str, api: Optional[client.CoreV1Api] = None) -> bool:
    """Delete a Secret, ignore 404. Returns True if deleted, False if not found."""
    api = api or core_api()
    try:
        api.delete_namespaced_secret(name=name, namespace=namespace)
        logger.info(f"Secret {namespace}/{name} deleted")
        return True
    except ApiException as e:
        if e.status == 404:
            logger.info(f"Secret {namespace}/{name} already gone")
            return False
        raise


def teardown(namespace: str, secret_names: Iterable[str], api: Optional[client.CoreV1Api] = None) -> list[str]:
    """Delete every named secret in namespace; returns the names actually deleted."""
    api = api or core_api()
    return [name for name in secret_names if delete_secret(name, namespace, api)]


def main() -> int:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    secrets = [settings.TEARDOWN_CA_SECRET, settings.TEARDOWN_CLIENT_SECRET]
    try:
        deleted = teardown(settings.TEARDOWN_NAMESPACE, secrets)
    except ApiException as e:
        logger.error(f"Teardown failed in {settings.TEARDOWN_NAMESPACE}: {e.status} {e.reason}")
        return 1
    logger.info(f"Teardown complete ({len(deleted)}/{len(secrets)} secrets deleted)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
