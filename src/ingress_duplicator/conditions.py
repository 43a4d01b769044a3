"""Helpers for maintaining the status conditions of an AppIngress.

Conditions are kept as an ordered list, unique by ``type``. The
``lastTransitionTime`` of a condition only moves when its ``status`` flips;
edits to ``reason`` or ``message`` leave it untouched.
"""

import datetime

from ingress_duplicator.crd.base import CRDCondition

NAMESPACE_VALID = "NamespaceValid"
INGRESS_CREATED = "IngressCreated"

TRUE = "True"
FALSE = "False"
UNKNOWN = "Unknown"

_VALID_STATUSES = (TRUE, FALSE, UNKNOWN)


def utcnow():
    """Current time, truncated to seconds as the API server stores it."""
    return datetime.datetime.now(datetime.timezone.utc).replace(microsecond=0)


def find_condition(conditions, condition_type):
    """Return the condition with the given type, or None."""
    for condition in conditions:
        if condition.type == condition_type:
            return condition
    return None


def is_condition_true(conditions, condition_type):
    condition = find_condition(conditions, condition_type)
    return condition is not None and condition.status == TRUE


def set_condition(
    conditions,
    condition_type,
    status,
    reason,
    message="",
    now=None,
    observed_generation=None,
):
    """Set a condition in place.

    Args:
        conditions: List of CRDCondition, mutated in place
        condition_type: Condition type, e.g. NamespaceValid
        status: One of "True", "False", "Unknown"
        reason: CamelCase reason
        message: Human readable message
        now: Transition time to use if the status changes (default: utcnow())
        observed_generation: Generation the condition was computed from

    Returns:
        bool: True if the list was modified
    """
    if status not in _VALID_STATUSES:
        raise ValueError(f"Invalid condition status: {status!r}")

    existing = find_condition(conditions, condition_type)
    if existing is None:
        conditions.append(
            CRDCondition(
                type=condition_type,
                status=status,
                reason=reason,
                message=message,
                lastTransitionTime=now or utcnow(),
                observedGeneration=observed_generation,
            )
        )
        return True

    changed = False
    if existing.status != status:
        existing.status = status
        existing.lastTransitionTime = now or utcnow()
        changed = True
    elif existing.lastTransitionTime is None:
        existing.lastTransitionTime = now or utcnow()
        changed = True

    if existing.reason != reason:
        existing.reason = reason
        changed = True
    if existing.message != message:
        existing.message = message
        changed = True
    if observed_generation is not None and existing.observedGeneration != observed_generation:
        existing.observedGeneration = observed_generation
        changed = True

    return changed


def remove_condition(conditions, condition_type):
    """Remove the condition with the given type. Returns True if one was removed."""
    for index, condition in enumerate(conditions):
        if condition.type == condition_type:
            del conditions[index]
            return True
    return False
