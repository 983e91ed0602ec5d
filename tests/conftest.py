"""
Shared pytest fixtures: an in-memory resource store and sample manifests.
"""

from __future__ import annotations

import copy
import logging

import pytest

from manualscaler.errors import ConflictError, NotFoundError
from manualscaler.ownership import apply_merge_patch
from manualscaler.resources import ObjectKey, ScaleIntent, Workload
from manualscaler.store import ResourceStore

logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s", force=True)
logging.getLogger("manualscaler").setLevel(logging.DEBUG)

NAMESPACE = "default"


class FakeStore(ResourceStore):
    """Resource store backed by dicts, recording every write."""

    def __init__(self):
        self.intents: dict[ObjectKey, dict] = {}
        self.workloads: dict[ObjectKey, dict] = {}
        self.deployments: dict[ObjectKey, dict] = {}
        self.patches: list[tuple[ObjectKey, dict]] = []
        self.status_writes: list[ScaleIntent] = []
        self.get_errors: dict[ObjectKey, Exception] = {}
        self.intent_error: Exception | None = None
        self.patch_error: Exception | None = None
        self.status_error: Exception | None = None
        self.before_patch = None
        self._version = 100

    def _bump(self, obj: dict) -> None:
        self._version += 1
        obj.setdefault("metadata", {})["resourceVersion"] = str(self._version)

    def get_scale_intent(self, key):
        if self.intent_error is not None:
            raise self.intent_error
        if key not in self.intents:
            raise NotFoundError(f"manualscalertrait {key} not found")
        return ScaleIntent.from_dict(self.intents[key])

    def get_workload(self, key):
        if key not in self.workloads:
            raise NotFoundError(f"containerizedworkload {key} not found")
        return Workload.from_dict(self.workloads[key])

    def get_deployment(self, key):
        if key in self.get_errors:
            raise self.get_errors[key]
        if key not in self.deployments:
            raise NotFoundError(f"deployment {key} not found")
        return copy.deepcopy(self.deployments[key])

    def patch_deployment(self, key, patch):
        if self.before_patch is not None:
            self.before_patch(self)
        self.patches.append((key, copy.deepcopy(patch)))
        if self.patch_error is not None:
            raise self.patch_error
        current = self.deployments[key]
        expected = (patch.get("metadata") or {}).get("resourceVersion")
        if expected is not None and expected != current["metadata"].get("resourceVersion"):
            raise ConflictError(f"deployment {key} was modified")
        patched = apply_merge_patch(current, patch)
        self._bump(patched)
        self.deployments[key] = patched
        return copy.deepcopy(patched)

    def update_scale_intent_status(self, intent):
        self.status_writes.append(copy.deepcopy(intent))
        if self.status_error is not None:
            raise self.status_error
        stored = self.intents[intent.key]
        stored["status"] = intent.to_dict()["status"]
        self._bump(stored)
        return ScaleIntent.from_dict(stored)


def make_trait(name="trait1", replicas=3, workload="wl1", workload_uid="abc", uid="trait-uid"):
    ref = {"apiVersion": "core.oam.dev/v1alpha2", "kind": "ContainerizedWorkload", "name": workload}
    if workload_uid is not None:
        ref["uid"] = workload_uid
    return {
        "apiVersion": "core.oam.dev/v1alpha2",
        "kind": "ManualScalerTrait",
        "metadata": {"name": name, "namespace": NAMESPACE, "uid": uid, "resourceVersion": "1"},
        "spec": {"replicaCount": replicas, "workloadRef": ref},
    }


def make_workload(name="wl1", uid="abc", resources=None):
    if resources is None:
        resources = [{"apiVersion": "apps/v1", "kind": "Deployment", "name": "dep1"}]
    return {
        "apiVersion": "core.oam.dev/v1alpha2",
        "kind": "ContainerizedWorkload",
        "metadata": {"name": name, "namespace": NAMESPACE, "uid": uid},
        "status": {"resources": resources},
    }


def make_deployment(name="dep1", replicas=1, owner_references=None):
    meta = {"name": name, "namespace": NAMESPACE, "uid": f"{name}-uid", "resourceVersion": "7"}
    if owner_references is not None:
        meta["ownerReferences"] = owner_references
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": meta,
        "spec": {
            "replicas": replicas,
            "selector": {"matchLabels": {"app": name}},
            "template": {
                "metadata": {"labels": {"app": name}},
                "spec": {"containers": [{"name": "app", "image": "nginx:1.25"}]},
            },
        },
    }


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def happy_store(store):
    """Trait -> workload -> Deployment, all consistent."""
    store.intents[ObjectKey(NAMESPACE, "trait1")] = make_trait()
    store.workloads[ObjectKey(NAMESPACE, "wl1")] = make_workload()
    store.deployments[ObjectKey(NAMESPACE, "dep1")] = make_deployment()
    return store
