"""Reconciler keeping a Deployment's replicas in line with a ManualScalerTrait.

Each call to `reconcile` runs one forward pass:

- read the trait (gone means done, nothing to report)
- read the workload it references and check its uid
- pick the first Deployment the workload manages that can be read
- set the trait as the Deployment's controller and merge-patch its replicas
- record the outcome as a condition on the trait status

Domain failures are written to the status and retried after a fixed delay.
A failed status write is raised so kopf retries the handler with backoff.
"""

import copy
import logging
from logging import Logger
from typing import Any

from manualscaler.conditions import Condition, reconcile_error, reconcile_success, set_condition
from manualscaler.config import ReconcileSettings
from manualscaler.errors import (
    NotFoundError,
    OwnerReferenceError,
    Reason,
    StatusUpdateError,
    StoreError,
    wrap,
)
from manualscaler.ownership import compute_merge_patch, with_owner_reference
from manualscaler.resources import ObjectKey, ReconcileResult, ScaleIntent
from manualscaler.store import ResourceStore


class ManualScalerReconciler:
    def __init__(
        self,
        store: ResourceStore,
        settings: ReconcileSettings | None = None,
        logger: Logger | None = None,
    ):
        self.store = store
        self.settings = settings or ReconcileSettings()
        self.logger = logger or logging.getLogger("manualscaler.reconcile")

    def reconcile(self, key: ObjectKey) -> ReconcileResult:
        log = self.logger
        log.info(f"Reconcile manualscaler trait {key}")

        try:
            intent = self.store.get_scale_intent(key)
        except NotFoundError:
            log.info(f"ManualScalerTrait {key} no longer exists")
            return ReconcileResult()
        log.info(
            f"Get the manualscaler trait {key}: replicaCount={intent.replica_count} "
            f"workloadRef={intent.workload_reference.name}"
        )

        ref = intent.workload_reference
        workload_key = ObjectKey(key.namespace, ref.name)
        try:
            workload = self.store.get_workload(workload_key)
        except StoreError as e:
            log.error(f"Failed to get workload {workload_key}: {e}")
            return self.fail(
                intent, Reason.CANNOT_LOCATE_WORKLOAD, wrap(e, self.settings.err_locate_workload)
            )
        log.info(f"Get the workload the trait is pointing to {workload_key}, UID {workload.uid}")

        if ref.uid is None or workload.uid != ref.uid:
            log.info(f"Wrong workload, trait references UID {ref.uid}, workload has UID {workload.uid}")
            return self.fail(intent, Reason.CANNOT_LOCATE_WORKLOAD, self.settings.err_locate_workload)

        # TODO: refuse to scale when the workload manages more than one Deployment
        deployment = None
        for res in workload.managed_resources:
            if res.kind != self.settings.deployment_kind:
                continue
            dep_key = ObjectKey(key.namespace, res.name)
            try:
                deployment = self.store.get_deployment(dep_key)
            except StoreError as e:
                log.error(f"Failed to get an associated deployment {dep_key}: {e}")
                intent.conditions = self.set(
                    intent,
                    reconcile_error(
                        Reason.CANNOT_LOCATE_DEPLOYMENT,
                        wrap(e, self.settings.err_locate_deployment),
                        self.settings.condition_type,
                    ),
                )
                continue
            break
        if deployment is None:
            log.info(f"Cannot locate a deployment, total resources {len(workload.managed_resources)}")
            return self.fail(intent, Reason.CANNOT_LOCATE_DEPLOYMENT, self.settings.err_locate_deployment)

        dep_meta = deployment.get("metadata", {})
        dep_key = ObjectKey(dep_meta.get("namespace") or key.namespace, dep_meta.get("name", ""))
        log.info(f"Get the deployment the trait is going to modify {dep_key}, UID {dep_meta.get('uid')}")

        # the controller reference lets Deployment events map back to this trait
        try:
            desired = with_owner_reference(deployment, intent.owner_view())
        except OwnerReferenceError as e:
            log.error(f"Failed to set controller reference to the owned deployment {dep_key}: {e}")
            return self.fail(
                intent, Reason.CANNOT_SCALE_DEPLOYMENT, wrap(e, self.settings.err_scale_deployment)
            )
        desired.setdefault("spec", {})["replicas"] = intent.replica_count

        patch = self.build_patch(deployment, desired)
        try:
            self.store.patch_deployment(dep_key, patch)
        except StoreError as e:
            log.error(f"Failed to scale deployment {dep_key}: {e}")
            return self.fail(
                intent, Reason.CANNOT_SCALE_DEPLOYMENT, wrap(e, self.settings.err_scale_deployment)
            )

        log.info(f"Successfully scaled deployment {dep_key} to {intent.replica_count} replicas")
        intent.conditions = self.set(intent, reconcile_success(self.settings.condition_type))
        self.update_status(intent)
        return ReconcileResult()

    def build_patch(self, base: dict[str, Any], desired: dict[str, Any]) -> dict[str, Any]:
        patch = compute_merge_patch(base, desired)
        resource_version = base.get("metadata", {}).get("resourceVersion")
        if self.settings.optimistic_lock and resource_version:
            patch.setdefault("metadata", {})["resourceVersion"] = resource_version
        return patch

    def set(self, intent: ScaleIntent, condition: Condition) -> list[Condition]:
        return set_condition(copy.copy(intent.conditions), condition)

    def fail(self, intent: ScaleIntent, reason: Reason, message: str) -> ReconcileResult:
        condition = reconcile_error(reason, message, self.settings.condition_type)
        intent.conditions = self.set(intent, condition)
        self.update_status(intent)
        return ReconcileResult(requeue_after=self.settings.retry_delay)

    def update_status(self, intent: ScaleIntent) -> None:
        try:
            self.store.update_scale_intent_status(intent)
        except StoreError as e:
            self.logger.error(f"Failed to update status of {intent.key}: {e}")
            raise StatusUpdateError(wrap(e, self.settings.err_update_status), e) from e
