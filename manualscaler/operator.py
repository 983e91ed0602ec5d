"""kopf handlers driving the reconciler.

Traits are reconciled when they are created, resumed or updated. Workload
events reach the traits that reference them through a kopf index, and
Deployment events reach the trait that controls the Deployment. A trait
whose last reconcile failed is retried by a timer every `retry_delay`
seconds until its condition turns back to success.

kopf runs sync handlers in its thread pool, so a trait could be picked up
by a change handler, a timer and an event handler at once. A lock per trait
keeps it to one reconcile at a time.
"""

import logging
import threading
from logging import Logger
from typing import Any

import kopf

from manualscaler.conditions import ConditionStatus
from manualscaler.config import ReconcileSettings
from manualscaler.ownership import get_controller_of
from manualscaler.reconcile import ManualScalerReconciler
from manualscaler.resources import (
    KIND_MANUAL_SCALER_TRAIT,
    OAM_GROUP,
    OAM_VERSION,
    PLURAL_CONTAINERIZED_WORKLOAD,
    PLURAL_MANUAL_SCALER_TRAIT,
    ObjectKey,
    ReconcileResult,
)

INDEX_TRAITS_BY_WORKLOAD = "traits_by_workload"


class ScalerOperator:
    def __init__(
        self,
        reconciler: ManualScalerReconciler,
        settings: ReconcileSettings | None = None,
        workers: int = 2,
        logger: Logger | None = None,
    ):
        self.reconciler = reconciler
        self.settings = settings or reconciler.settings
        self.workers = workers
        self.logger = logger or logging.getLogger("manualscaler.operator")
        self._guard = threading.Lock()
        self._locks: dict[ObjectKey, threading.Lock] = {}

    def _lock_for(self, key: ObjectKey) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    def reconcile_key(self, key: ObjectKey) -> ReconcileResult:
        with self._lock_for(key):
            return self.reconciler.reconcile(key)

    # trait handlers

    def on_trait(self, name: str, namespace: str, **_: Any) -> None:
        result = self.reconcile_key(ObjectKey(namespace, name))
        if not result.done:
            raise kopf.TemporaryError(
                f"ManualScalerTrait {namespace}/{name} not reconciled yet",
                delay=result.requeue_after,
            )

    def needs_retry(self, status: dict[str, Any] | None = None, **_: Any) -> bool:
        for cond in (status or {}).get("conditions") or []:
            if cond.get("type") == self.settings.condition_type:
                return cond.get("status") == ConditionStatus.ERROR.value
        return False

    def retry_failed(self, name: str, namespace: str, **_: Any) -> None:
        key = ObjectKey(namespace, name)
        self.logger.info(f"Retrying failed ManualScalerTrait {key}")
        self.reconcile_key(key)

    def index_trait(self, name: str, namespace: str, spec: dict[str, Any], **_: Any) -> dict:
        workload = (spec.get("workloadRef") or {}).get("name")
        if not workload:
            return {}
        return {(namespace, workload): ObjectKey(namespace, name)}

    # secondary watches

    def on_workload_event(self, name: str, namespace: str, **kwargs: Any) -> None:
        index = kwargs.get(INDEX_TRAITS_BY_WORKLOAD) or {}
        for key in index.get((namespace, name), []):
            self.logger.info(f"Workload {namespace}/{name} changed, reconciling trait {key}")
            self.reconcile_key(key)

    def on_deployment_event(self, body: dict[str, Any], type: str | None = None, **_: Any) -> None:
        if type == "DELETED":
            return
        owner = get_controller_of(body)
        if owner is None or owner.get("kind") != KIND_MANUAL_SCALER_TRAIT:
            return
        if not (owner.get("apiVersion") or "").startswith(f"{OAM_GROUP}/"):
            return
        namespace = body.get("metadata", {}).get("namespace", "")
        key = ObjectKey(namespace, owner.get("name", ""))
        self.logger.info(f"Deployment {namespace}/{body['metadata'].get('name')} changed, reconciling trait {key}")
        self.reconcile_key(key)

    def configure(self, settings: kopf.OperatorSettings, **_: Any) -> None:
        settings.execution.max_workers = self.workers
        settings.posting.level = logging.WARNING

    def register(self, registry: kopf.OperatorRegistry) -> None:
        trait = (OAM_GROUP, OAM_VERSION, PLURAL_MANUAL_SCALER_TRAIT)
        workload = (OAM_GROUP, OAM_VERSION, PLURAL_CONTAINERIZED_WORKLOAD)

        kopf.on.startup(registry=registry)(self.configure)
        kopf.index(*trait, id=INDEX_TRAITS_BY_WORKLOAD, registry=registry)(self.index_trait)
        kopf.on.resume(*trait, id="reconcile-resume", registry=registry)(self.on_trait)
        kopf.on.create(*trait, id="reconcile-create", registry=registry)(self.on_trait)
        kopf.on.update(*trait, id="reconcile-update", registry=registry)(self.on_trait)
        kopf.timer(
            *trait,
            id="retry-failed",
            interval=self.settings.retry_delay,
            initial_delay=self.settings.retry_delay,
            when=self.needs_retry,
            registry=registry,
        )(self.retry_failed)
        kopf.on.event(*workload, id="workload-event", registry=registry)(self.on_workload_event)
        kopf.on.event("apps", "v1", "deployments", id="deployment-event", registry=registry)(
            self.on_deployment_event
        )


__all__ = ["ScalerOperator", "INDEX_TRAITS_BY_WORKLOAD"]
