"""Pure manifest helpers: controller owner references and JSON merge patches.

Both functions work on plain dict manifests and never touch the cluster.
"""

import copy
from typing import Any

from manualscaler.errors import AlreadyOwnedError, OwnerReferenceError


def api_group(api_version: str | None) -> str:
    """Return the group part of an apiVersion ("apps/v1" -> "apps", "v1" -> "")."""
    if not api_version or "/" not in api_version:
        return ""
    return api_version.split("/", 1)[0]


def refers_to_same_object(a: dict[str, Any], b: dict[str, Any]) -> bool:
    return (
        api_group(a.get("apiVersion")) == api_group(b.get("apiVersion"))
        and a.get("kind") == b.get("kind")
        and a.get("name") == b.get("name")
    )


def controller_reference(owner: dict[str, Any]) -> dict[str, Any]:
    meta = owner.get("metadata", {})
    return {
        "apiVersion": owner.get("apiVersion"),
        "kind": owner.get("kind"),
        "name": meta.get("name"),
        "uid": meta.get("uid"),
        "controller": True,
        "blockOwnerDeletion": True,
    }


def get_controller_of(resource: dict[str, Any]) -> dict[str, Any] | None:
    for ref in resource.get("metadata", {}).get("ownerReferences") or []:
        if ref.get("controller"):
            return ref
    return None


def with_owner_reference(resource: dict[str, Any], owner: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of `resource` with `owner` set as its controller.

    An existing reference to the same owner is updated in place, so calling
    this repeatedly never adds duplicates. Raises AlreadyOwnedError if another
    object already controls the resource.
    """
    owner_meta = owner.get("metadata", {})
    res_meta = resource.get("metadata", {})
    if not owner_meta.get("uid"):
        raise OwnerReferenceError(
            f"owner {owner.get('kind')}/{owner_meta.get('name')} has no uid"
        )
    owner_ns = owner_meta.get("namespace")
    if owner_ns and owner_ns != res_meta.get("namespace"):
        raise OwnerReferenceError(
            f"cross-namespace owner references are disallowed, owner's namespace "
            f"{owner_ns}, obj's namespace {res_meta.get('namespace')}"
        )

    ref = controller_reference(owner)
    current = get_controller_of(resource)
    if current is not None and not refers_to_same_object(current, ref):
        raise AlreadyOwnedError(
            f"Object {res_meta.get('namespace')}/{res_meta.get('name')} is already owned "
            f"by another {current.get('kind')} controller {current.get('name')}"
        )

    out = copy.deepcopy(resource)
    refs = out.setdefault("metadata", {}).get("ownerReferences") or []
    for i, existing in enumerate(refs):
        if refers_to_same_object(existing, ref):
            refs[i] = ref
            break
    else:
        refs.append(ref)
    out["metadata"]["ownerReferences"] = refs
    return out


def compute_merge_patch(base: Any, desired: Any) -> Any:
    """Return the RFC 7386 merge patch that turns `base` into `desired`.

    Lists and scalars are replaced wholesale, removed keys map to None and
    unchanged keys are left out.
    """
    if not isinstance(base, dict) or not isinstance(desired, dict):
        return copy.deepcopy(desired)
    patch: dict[str, Any] = {}
    for key, value in desired.items():
        if key not in base:
            patch[key] = copy.deepcopy(value)
        elif base[key] != value:
            if isinstance(base[key], dict) and isinstance(value, dict):
                patch[key] = compute_merge_patch(base[key], value)
            else:
                patch[key] = copy.deepcopy(value)
    for key in base:
        if key not in desired:
            patch[key] = None
    return patch


def apply_merge_patch(target: Any, patch: Any) -> Any:
    """Apply an RFC 7386 merge patch to `target` and return the result."""
    if not isinstance(patch, dict):
        return copy.deepcopy(patch)
    out = copy.deepcopy(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            out.pop(key, None)
        else:
            out[key] = apply_merge_patch(out.get(key), value)
    return out


__all__ = [
    "with_owner_reference",
    "compute_merge_patch",
    "apply_merge_patch",
    "get_controller_of",
    "controller_reference",
]
