"""Status conditions recording the outcome of the last reconcile.

Conditions are keyed by type. Setting a condition replaces the existing one
of the same type; `lastTransitionTime` only moves when `status` changes.
"""

import copy
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from manualscaler.errors import Reason

TYPE_SYNCED = "Synced"


class ConditionStatus(str, Enum):
    SUCCESS = "True"
    ERROR = "False"


KNOWN_KEYS = ("type", "status", "reason", "message", "lastTransitionTime")


@dataclass(frozen=True)
class Condition:
    """One entry of `status.conditions`.

    Statuses outside True/False and keys this controller does not model are
    kept as read, so conditions owned by other writers survive a status write.
    """

    type: str
    status: ConditionStatus | str
    reason: str
    message: str = ""
    last_transition_time: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Condition":
        raw_status = data.get("status", "")
        try:
            status = ConditionStatus(raw_status)
        except ValueError:
            status = raw_status
        return cls(
            type=data.get("type", ""),
            status=status,
            reason=data.get("reason", ""),
            message=data.get("message", ""),
            last_transition_time=data.get("lastTransitionTime"),
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in KNOWN_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        out = copy.deepcopy(self.extra)
        out["type"] = self.type
        out["status"] = getattr(self.status, "value", self.status)
        if self.reason:
            out["reason"] = self.reason
        if self.last_transition_time is not None:
            out["lastTransitionTime"] = self.last_transition_time
        if self.message:
            out["message"] = self.message
        return out

    def same_as(self, other: "Condition") -> bool:
        """Equal in everything but the transition time."""
        return (
            self.type == other.type
            and self.status == other.status
            and self.reason == other.reason
            and self.message == other.message
        )


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def reconcile_success(condition_type: str = TYPE_SYNCED) -> Condition:
    return Condition(
        type=condition_type,
        status=ConditionStatus.SUCCESS,
        reason=Reason.RECONCILE_SUCCESS.value,
    )


def reconcile_error(reason: Reason, message: str, condition_type: str = TYPE_SYNCED) -> Condition:
    return Condition(
        type=condition_type,
        status=ConditionStatus.ERROR,
        reason=reason.value,
        message=message,
    )


def set_condition(
    conditions: list[Condition],
    new: Condition,
    now: Callable[[], str] = utc_now,
) -> list[Condition]:
    """Return a new condition list with `new` merged in, preserving order."""
    out: list[Condition] = []
    merged = False
    for existing in conditions:
        if existing.type != new.type:
            out.append(existing)
            continue
        if merged:
            continue
        merged = True
        if existing.same_as(new):
            out.append(existing)
        elif existing.status == new.status:
            out.append(replace(new, last_transition_time=existing.last_transition_time or now()))
        else:
            out.append(replace(new, last_transition_time=now()))
    if not merged:
        out.append(replace(new, last_transition_time=now()))
    return out


def get_condition(conditions: list[Condition], condition_type: str = TYPE_SYNCED) -> Condition | None:
    for c in conditions:
        if c.type == condition_type:
            return c
    return None
