"""Rancher API types.

TypedDicts mirror the JSON payloads; Volume is the snapshot handed to the
rest of the provider.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NotRequired, TypedDict

# =============================================================================
# Payload Types
# =============================================================================


class VolumeResponse(TypedDict):
    """Volume resource as returned by the Rancher v2-beta API."""

    id: str
    type: NotRequired[str]
    name: NotRequired[str | None]
    description: NotRequired[str | None]
    driver: NotRequired[str | None]
    accountId: NotRequired[str | None]
    state: str
    removed: NotRequired[str | None]
    links: NotRequired[dict[str, str]]
    actions: NotRequired[dict[str, str]]


class VolumeCreate(TypedDict):
    """Body of POST /volumes."""

    name: str
    driver: str
    description: NotRequired[str]


class VolumePatch(TypedDict, total=False):
    """Body of PUT /volumes/{id}. Only mutable fields."""

    name: str
    description: str


# =============================================================================
# Snapshot
# =============================================================================


@dataclass(frozen=True, slots=True)
class Volume:
    """Observed state of a remote volume. Never mutated locally."""

    id: str
    state: str
    name: str = ""
    description: str = ""
    driver: str = ""
    account_id: str = ""
    removed: str | None = None
    links: dict[str, str] = field(default_factory=dict)
    actions: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: VolumeResponse) -> Volume:
        return cls(
            id=data["id"],
            state=data.get("state") or "",
            name=data.get("name") or "",
            description=data.get("description") or "",
            driver=data.get("driver") or "",
            account_id=data.get("accountId") or "",
            removed=data.get("removed"),
            links=dict(data.get("links") or {}),
            actions=dict(data.get("actions") or {}),
        )


__all__ = ["Volume", "VolumeCreate", "VolumePatch", "VolumeResponse"]
