"""
Domain errors raised while reconciling the konnectivity agent.

Kubernetes API exceptions are translated at the service layer so the
operator handlers only deal with these types.
"""
from typing import Optional

from kubernetes.client import ApiException


class OperatorError(Exception):
    """Base class for every error that aborts a reconcile pass."""


class ResolutionError(OperatorError):
    """A client bound to the tenant cluster could not be obtained."""


class AddressResolutionError(OperatorError):
    """The tenant control plane has no assigned network address yet."""


class StoreError(OperatorError):
    """The tenant object store rejected a read or a write."""

    def __init__(self, message: str, status: Optional[int] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.reason = reason

    @classmethod
    def from_api_exception(cls, action: str, e: ApiException) -> "StoreError":
        return cls(f"{action} failed ({e.status} {e.reason})", status=e.status, reason=e.reason)

    @classmethod
    def from_transport_error(cls, action: str, e: Exception) -> "StoreError":
        return cls(f"{action} failed (tenant API unreachable: {e})", reason=type(e).__name__)
