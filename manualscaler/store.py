"""Resource store: reads and writes traits, workloads and Deployments.

`ResourceStore` is the interface the reconciler talks to. `KubernetesStore`
implements it on top of the official kubernetes client and turns
`ApiException`s into NotFoundError / ConflictError / StoreError.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from manualscaler.errors import ConflictError, NotFoundError, StoreError
from manualscaler.resources import (
    OAM_GROUP,
    OAM_VERSION,
    PLURAL_CONTAINERIZED_WORKLOAD,
    PLURAL_MANUAL_SCALER_TRAIT,
    ObjectKey,
    ScaleIntent,
    Workload,
)

MERGE_PATCH = "application/merge-patch+json"


class ResourceStore(ABC):
    @abstractmethod
    def get_scale_intent(self, key: ObjectKey) -> ScaleIntent: ...

    @abstractmethod
    def get_workload(self, key: ObjectKey) -> Workload: ...

    @abstractmethod
    def get_deployment(self, key: ObjectKey) -> dict[str, Any]:
        """Return the Deployment manifest as a plain dict."""

    @abstractmethod
    def patch_deployment(self, key: ObjectKey, patch: dict[str, Any]) -> dict[str, Any]:
        """Apply a JSON merge patch and return the patched manifest."""

    @abstractmethod
    def update_scale_intent_status(self, intent: ScaleIntent) -> ScaleIntent: ...


def load_kube_config(in_cluster: bool = True) -> None:
    """Load in-cluster credentials, falling back to the local kubeconfig."""
    if in_cluster:
        try:
            config.load_incluster_config()
            return
        except ConfigException:
            pass
    config.load_kube_config()


@contextmanager
def translate_api_errors(action: str, key: ObjectKey) -> Iterator[None]:
    try:
        yield
    except ApiException as e:
        message = f"failed to {action} {key}: {e.status} {e.reason}"
        if e.status == 404:
            raise NotFoundError(message, e) from e
        if e.status == 409:
            raise ConflictError(message, e) from e
        raise StoreError(message, e) from e


class KubernetesStore(ResourceStore):
    def __init__(
        self,
        custom: client.CustomObjectsApi | None = None,
        apps: client.AppsV1Api | None = None,
        api_client: client.ApiClient | None = None,
    ):
        self.api_client = api_client or client.ApiClient()
        self.custom = custom or client.CustomObjectsApi(self.api_client)
        self.apps = apps or client.AppsV1Api(self.api_client)

    def get_scale_intent(self, key: ObjectKey) -> ScaleIntent:
        with translate_api_errors("get ManualScalerTrait", key):
            obj = self.custom.get_namespaced_custom_object(
                OAM_GROUP, OAM_VERSION, key.namespace, PLURAL_MANUAL_SCALER_TRAIT, key.name
            )
        return ScaleIntent.from_dict(obj)

    def get_workload(self, key: ObjectKey) -> Workload:
        with translate_api_errors("get ContainerizedWorkload", key):
            obj = self.custom.get_namespaced_custom_object(
                OAM_GROUP, OAM_VERSION, key.namespace, PLURAL_CONTAINERIZED_WORKLOAD, key.name
            )
        return Workload.from_dict(obj)

    def get_deployment(self, key: ObjectKey) -> dict[str, Any]:
        with translate_api_errors("read Deployment", key):
            deployment = self.apps.read_namespaced_deployment(name=key.name, namespace=key.namespace)
        return self.api_client.sanitize_for_serialization(deployment)

    def patch_deployment(self, key: ObjectKey, patch: dict[str, Any]) -> dict[str, Any]:
        with translate_api_errors("patch Deployment", key):
            patched = self.apps.patch_namespaced_deployment(
                name=key.name,
                namespace=key.namespace,
                body=patch,
                _content_type=MERGE_PATCH,
            )
        return self.api_client.sanitize_for_serialization(patched)

    def update_scale_intent_status(self, intent: ScaleIntent) -> ScaleIntent:
        with translate_api_errors("update ManualScalerTrait status", intent.key):
            obj = self.custom.replace_namespaced_custom_object_status(
                OAM_GROUP,
                OAM_VERSION,
                intent.namespace,
                PLURAL_MANUAL_SCALER_TRAIT,
                intent.name,
                intent.to_dict(),
            )
        return ScaleIntent.from_dict(obj)


__all__ = [
    "ResourceStore",
    "KubernetesStore",
    "load_kube_config",
    "translate_api_errors",
    "MERGE_PATCH",
]
