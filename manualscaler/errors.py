"""Exceptions and condition reasons used by the manual scaler controller."""

from enum import Enum


class Reason(str, Enum):
    """Condition reasons written onto a ManualScalerTrait status."""

    RECONCILE_SUCCESS = "ReconcileSuccess"
    CANNOT_LOCATE_WORKLOAD = "CannotLocateWorkload"
    CANNOT_LOCATE_DEPLOYMENT = "CannotLocateDeployment"
    CANNOT_SCALE_DEPLOYMENT = "CannotScaleDeployment"


class ManualScalerError(Exception):
    pass


class ConfigError(ManualScalerError):
    pass


class StoreError(ManualScalerError):
    """A resource store call failed. `cause` holds the underlying exception."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class NotFoundError(StoreError):
    pass


class ConflictError(StoreError):
    pass


class OwnerReferenceError(ManualScalerError):
    pass


class AlreadyOwnedError(OwnerReferenceError):
    pass


class StatusUpdateError(ManualScalerError):
    """Writing the trait status failed; kopf retries the handler with backoff."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


def wrap(cause: Exception | None, message: str) -> str:
    """Return `message`, suffixed with the cause text when there is one."""
    if cause is None:
        return message
    return f"{message}: {cause}"
