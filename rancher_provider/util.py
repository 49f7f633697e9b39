"""Small helpers shared by resource handlers."""

from __future__ import annotations

REMOVED_STATES = frozenset({"removed", "purging", "purged"})


def split_id(raw: str) -> tuple[str, str]:
    """Split an import id of the form ``<scope>/<id>`` or ``<id>``.

    Returns:
        (scope, id); scope is empty when the input has no ``/``.
    """
    scope, sep, resource_id = raw.partition("/")
    if not sep:
        return "", raw
    return scope, resource_id


def removed(state: str) -> bool:
    """Whether a Rancher state means the resource is gone."""
    return state in REMOVED_STATES
