"""
KubernetesStore against mocked kubernetes client APIs.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from conftest import make_trait, make_workload
from manualscaler.errors import ConflictError, NotFoundError, StoreError
from manualscaler.resources import ObjectKey, ScaleIntent
from manualscaler.store import MERGE_PATCH, KubernetesStore, load_kube_config

KEY = ObjectKey("default", "trait1")


@pytest.fixture
def custom():
    return MagicMock(spec=client.CustomObjectsApi)


@pytest.fixture
def apps():
    return MagicMock(spec=client.AppsV1Api)


@pytest.fixture
def k8s_store(custom, apps):
    return KubernetesStore(custom=custom, apps=apps, api_client=client.ApiClient())


def test_get_scale_intent(k8s_store, custom):
    custom.get_namespaced_custom_object.return_value = make_trait()

    intent = k8s_store.get_scale_intent(KEY)

    custom.get_namespaced_custom_object.assert_called_once_with(
        "core.oam.dev", "v1alpha2", "default", "manualscalertraits", "trait1"
    )
    assert intent.replica_count == 3
    assert intent.workload_reference.name == "wl1"
    assert intent.workload_reference.uid == "abc"


def test_get_workload(k8s_store, custom):
    custom.get_namespaced_custom_object.return_value = make_workload()

    workload = k8s_store.get_workload(ObjectKey("default", "wl1"))

    assert workload.uid == "abc"
    assert [(r.kind, r.name) for r in workload.managed_resources] == [("Deployment", "dep1")]


@pytest.mark.parametrize(
    "status, error",
    [(404, NotFoundError), (409, ConflictError), (500, StoreError)],
)
def test_api_errors_are_translated(k8s_store, custom, status, error):
    custom.get_namespaced_custom_object.side_effect = ApiException(status=status, reason="x")

    with pytest.raises(error) as excinfo:
        k8s_store.get_scale_intent(KEY)
    assert isinstance(excinfo.value.cause, ApiException)


def test_get_deployment_returns_manifest(k8s_store, apps):
    apps.read_namespaced_deployment.return_value = client.V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=client.V1ObjectMeta(name="dep1", namespace="default", resource_version="7"),
        spec=client.V1DeploymentSpec(
            replicas=2,
            selector=client.V1LabelSelector(match_labels={"app": "dep1"}),
            template=client.V1PodTemplateSpec(),
        ),
    )

    dep = k8s_store.get_deployment(ObjectKey("default", "dep1"))

    apps.read_namespaced_deployment.assert_called_once_with(name="dep1", namespace="default")
    assert dep["metadata"]["resourceVersion"] == "7"
    assert dep["spec"]["replicas"] == 2
    assert dep["spec"]["selector"] == {"matchLabels": {"app": "dep1"}}


def test_patch_deployment_uses_merge_patch(k8s_store, apps):
    apps.patch_namespaced_deployment.return_value = client.V1Deployment(
        metadata=client.V1ObjectMeta(name="dep1"),
    )
    body = {"spec": {"replicas": 3}}

    k8s_store.patch_deployment(ObjectKey("default", "dep1"), body)

    apps.patch_namespaced_deployment.assert_called_once_with(
        name="dep1", namespace="default", body=body, _content_type=MERGE_PATCH
    )


def test_update_status_sends_full_object(k8s_store, custom):
    intent = ScaleIntent.from_dict(make_trait())
    custom.replace_namespaced_custom_object_status.return_value = make_trait()

    k8s_store.update_scale_intent_status(intent)

    args = custom.replace_namespaced_custom_object_status.call_args.args
    assert args[:5] == ("core.oam.dev", "v1alpha2", "default", "manualscalertraits", "trait1")
    body = args[5]
    assert body["metadata"]["resourceVersion"] == "1"
    assert body["status"] == {"conditions": []}


def test_status_conflict(k8s_store, custom):
    custom.replace_namespaced_custom_object_status.side_effect = ApiException(status=409)

    with pytest.raises(ConflictError):
        k8s_store.update_scale_intent_status(ScaleIntent.from_dict(make_trait()))


def test_load_kube_config_prefers_in_cluster():
    with patch("manualscaler.store.config") as mock:
        load_kube_config(True)
        mock.load_incluster_config.assert_called_once()
        mock.load_kube_config.assert_not_called()


def test_load_kube_config_falls_back_to_kubeconfig():
    with patch("manualscaler.store.config") as mock:
        mock.load_incluster_config.side_effect = ConfigException("not in cluster")
        load_kube_config(True)
        mock.load_kube_config.assert_called_once()


def test_load_kube_config_out_of_cluster():
    with patch("manualscaler.store.config") as mock:
        load_kube_config(False)
        mock.load_incluster_config.assert_not_called()
        mock.load_kube_config.assert_called_once()
