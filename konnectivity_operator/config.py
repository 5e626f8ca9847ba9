"""
Operator, status API and teardown job settings.

Everything is read once from the environment at import time; an empty
REDIS_URL turns the event stream off.
"""
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    # Kubernetes
    KUBECONFIG: str = os.environ.get("KUBECONFIG", "")
    IN_CLUSTER: bool = os.environ.get("IN_CLUSTER", "false").lower() == "true"
    REQUEST_TIMEOUT: float = float(os.environ.get("REQUEST_TIMEOUT", "30"))

    # CRD
    CRD_GROUP: str = os.environ.get("CRD_GROUP", "kamaji.clastix.io")
    CRD_VERSION: str = os.environ.get("CRD_VERSION", "v1alpha1")
    CRD_PLURAL: str = os.environ.get("CRD_PLURAL", "tenantcontrolplanes")

    # Operator
    MAX_WORKERS: int = int(os.environ.get("MAX_WORKERS", "4"))
    RETRY_DELAY: int = int(os.environ.get("RETRY_DELAY", "15"))
    RESYNC_INTERVAL: int = int(os.environ.get("RESYNC_INTERVAL", "300"))
    METRICS_PORT: int = int(os.environ.get("METRICS_PORT", "8080"))
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # Event stream (empty = disabled)
    REDIS_URL: str = os.environ.get("REDIS_URL", "")

    # Status API
    API_HOST: str = os.environ.get("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.environ.get("API_PORT", "8081"))
    CORS_ORIGINS: str = os.environ.get("CORS_ORIGINS", "*")
    RATE_LIMIT: str = os.environ.get("RATE_LIMIT", "30/minute")

    # Post-delete teardown job
    TEARDOWN_NAMESPACE: str = os.environ.get("TEARDOWN_NAMESPACE", "kamaji-system")
    TEARDOWN_CA_SECRET: str = os.environ.get("TEARDOWN_CA_SECRET", "etcd-certs")
    TEARDOWN_CLIENT_SECRET: str = os.environ.get("TEARDOWN_CLIENT_SECRET", "root-client-certs")


settings = Settings()
