"""Typed views over the raw manifests the controller reads and writes.

Custom objects come back from the API as plain dicts. The dataclasses here
pick out the fields the reconciler needs and keep the raw manifest around so
that status writes send back everything the API server expects, including
`metadata.resourceVersion`.
"""

import copy
from dataclasses import dataclass, field
from typing import Any

from manualscaler.conditions import Condition

OAM_GROUP = "core.oam.dev"
OAM_VERSION = "v1alpha2"
OAM_API_VERSION = f"{OAM_GROUP}/{OAM_VERSION}"

KIND_MANUAL_SCALER_TRAIT = "ManualScalerTrait"
PLURAL_MANUAL_SCALER_TRAIT = "manualscalertraits"
KIND_CONTAINERIZED_WORKLOAD = "ContainerizedWorkload"
PLURAL_CONTAINERIZED_WORKLOAD = "containerizedworkloads"
KIND_DEPLOYMENT = "Deployment"


@dataclass(frozen=True)
class ObjectKey:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class WorkloadReference:
    name: str
    uid: str | None = None
    api_version: str | None = None
    kind: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "WorkloadReference":
        data = data or {}
        return cls(
            name=data.get("name", ""),
            uid=data.get("uid"),
            api_version=data.get("apiVersion"),
            kind=data.get("kind"),
        )


@dataclass
class ScaleIntent:
    """A ManualScalerTrait: a declared replica count for one workload."""

    name: str
    namespace: str
    uid: str | None
    replica_count: int
    workload_reference: WorkloadReference
    conditions: list[Condition] = field(default_factory=list)
    api_version: str = OAM_API_VERSION
    kind: str = KIND_MANUAL_SCALER_TRAIT
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.namespace, self.name)

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> "ScaleIntent":
        meta = obj.get("metadata", {})
        spec = obj.get("spec", {})
        status = obj.get("status") or {}
        return cls(
            name=meta.get("name", ""),
            namespace=meta.get("namespace", ""),
            uid=meta.get("uid"),
            replica_count=int(spec.get("replicaCount") or 0),
            workload_reference=WorkloadReference.from_dict(spec.get("workloadRef")),
            conditions=[Condition.from_dict(c) for c in status.get("conditions") or []],
            api_version=obj.get("apiVersion", OAM_API_VERSION),
            kind=obj.get("kind", KIND_MANUAL_SCALER_TRAIT),
            raw=copy.deepcopy(obj),
        )

    def to_dict(self) -> dict[str, Any]:
        obj = copy.deepcopy(self.raw)
        obj["apiVersion"] = self.api_version
        obj["kind"] = self.kind
        meta = obj.setdefault("metadata", {})
        meta["name"] = self.name
        meta["namespace"] = self.namespace
        if self.uid is not None:
            meta["uid"] = self.uid
        status = obj.get("status") or {}
        status["conditions"] = [c.to_dict() for c in self.conditions]
        obj["status"] = status
        return obj

    def owner_view(self) -> dict[str, Any]:
        """The minimal manifest `with_owner_reference` needs to point at this trait."""
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": {"name": self.name, "namespace": self.namespace, "uid": self.uid},
        }


@dataclass
class ManagedResource:
    kind: str
    name: str
    api_version: str | None = None
    uid: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ManagedResource":
        return cls(
            kind=data.get("kind", ""),
            name=data.get("name", ""),
            api_version=data.get("apiVersion"),
            uid=data.get("uid"),
        )


@dataclass
class Workload:
    """A ContainerizedWorkload and the resources it created."""

    name: str
    namespace: str
    uid: str | None
    managed_resources: list[ManagedResource] = field(default_factory=list)

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> "Workload":
        meta = obj.get("metadata", {})
        status = obj.get("status") or {}
        return cls(
            name=meta.get("name", ""),
            namespace=meta.get("namespace", ""),
            uid=meta.get("uid"),
            managed_resources=[
                ManagedResource.from_dict(r) for r in status.get("resources") or []
            ],
        )


@dataclass(frozen=True)
class ReconcileResult:
    """What the operator should do next with a trait.

    `requeue_after` is None when reconciliation is done, otherwise the number
    of seconds to wait before running it again.
    """

    requeue_after: float | None = None

    @property
    def done(self) -> bool:
        return self.requeue_after is None


__all__ = [
    "ObjectKey",
    "WorkloadReference",
    "ScaleIntent",
    "ManagedResource",
    "Workload",
    "ReconcileResult",
    "OAM_GROUP",
    "OAM_VERSION",
    "OAM_API_VERSION",
    "KIND_MANUAL_SCALER_TRAIT",
    "PLURAL_MANUAL_SCALER_TRAIT",
    "KIND_CONTAINERIZED_WORKLOAD",
    "PLURAL_CONTAINERIZED_WORKLOAD",
    "KIND_DEPLOYMENT",
]
