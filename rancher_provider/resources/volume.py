"""Lifecycle operations (create, read, update, delete, import) for Rancher volumes.

Each callback resolves a client scoped to the volume's environment, performs
at most one mutating API call, and waits for the volume to settle before
handing the attribute bag back to the host runtime.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from loguru import logger

from rancher_provider.config import ClientResolver
from rancher_provider.errors import ProviderError, ResourceNotFoundError, ResourceOperationError
from rancher_provider.rancher import RancherClient, Volume, VolumeCreate, VolumePatch
from rancher_provider.schema import Field, Resource, ResourceData, Schema
from rancher_provider.util import removed, split_id
from rancher_provider.wait import StateChangeConf, StateRefreshFunc

RESOURCE_NAME = "rancher_volume"

SCHEMA: Schema = {
    "id": Field(computed=True),
    "name": Field(required=True),
    "driver": Field(required=True),
    "description": Field(optional=True),
    "environment_id": Field(required=True, force_new=True),
}


@dataclass(frozen=True, slots=True)
class VolumeAttributes:
    """Typed view of the declared fields of a volume."""

    name: str
    driver: str
    environment_id: str
    description: str = ""

    @classmethod
    def from_resource_data(cls, d: ResourceData) -> VolumeAttributes:
        return cls(
            name=d.get("name"),
            driver=d.get("driver"),
            environment_id=d.get("environment_id"),
            description=d.get("description"),
        )

    @classmethod
    def from_volume(cls, volume: Volume, environment_id: str = "") -> VolumeAttributes:
        return cls(
            name=volume.name,
            driver=volume.driver,
            environment_id=volume.account_id or environment_id,
            description=volume.description,
        )

    def apply_to(self, d: ResourceData) -> None:
        d.set("name", self.name)
        d.set("driver", self.driver)
        d.set("environment_id", self.environment_id)
        d.set("description", self.description)


# =============================================================================
# Convergence phases
# =============================================================================


@dataclass(frozen=True, slots=True)
class WaitPhase:
    """Pending/target pair of one convergence call site."""

    name: str
    description: str
    pending: frozenset[str]
    target: frozenset[str]
    not_found_state: str | None = None

    def conf(self, client: RancherClient, volume_id: str, meta: ClientResolver) -> StateChangeConf:
        settings = meta.settings
        return StateChangeConf(
            pending=self.pending,
            target=self.target,
            refresh=volume_state_refresh(client, volume_id),
            resource_id=volume_id,
            timeout=settings.wait_timeout,
            delay=settings.wait_delay,
            min_timeout=settings.wait_min_timeout,
            not_found_state=self.not_found_state,
            sleep=meta.sleep,
        )


# "inactive" is both pending and target: the wait returns on its first
# observation. The transitional tags before it are the real pending states.
CREATE_SETTLE = WaitPhase(
    name="create",
    description="created",
    pending=frozenset({"requested", "registering", "creating", "inactive"}),
    target=frozenset({"inactive"}),
)

DELETE_DRAIN = WaitPhase(
    name="drain",
    description="detached or inactive",
    pending=frozenset({"active", "deactivating"}),
    target=frozenset({"inactive", "detached"}),
)

# A volume that vanishes instead of reporting "removed" is removed as well.
DELETE_REMOVED = WaitPhase(
    name="wait-removed",
    description="removed",
    pending=frozenset({"inactive", "detached", "removed", "removing"}),
    target=frozenset({"removed"}),
    not_found_state="removed",
)


def volume_state_refresh(client: RancherClient, volume_id: str) -> StateRefreshFunc:
    """Refresh function watching one Rancher volume."""

    def refresh() -> tuple[Volume | None, str]:
        volume = client.volume.by_id(volume_id)
        if volume is None:
            return None, ""
        return volume, volume.state

    return refresh


@contextmanager
def _phase(name: str, volume_id: str, message: str) -> Iterator[None]:
    try:
        yield
    except ProviderError as e:
        raise ResourceOperationError(name, volume_id, f"{message}: {e}") from e


def _wait(phase: WaitPhase, client: RancherClient, volume_id: str, meta: ClientResolver) -> None:
    logger.bind(resource=RESOURCE_NAME, volume_id=volume_id, phase=phase.name).debug(
        "Waiting for volume ({volume_id}) to be {description}",
        volume_id=volume_id, description=phase.description,
    )
    with _phase(phase.name, volume_id, f"Error waiting for volume ({volume_id}) to be {phase.description}"):
        phase.conf(client, volume_id, meta).wait_for_state()


# =============================================================================
# Lifecycle callbacks
# =============================================================================


def create(d: ResourceData, meta: ClientResolver) -> None:
    """Create a volume and wait until it settles.

    The id is assigned only once the volume has settled, so a failed create
    leaves the attribute bag without an id.
    """
    attrs = VolumeAttributes.from_resource_data(d)
    log = logger.bind(resource=RESOURCE_NAME, environment_id=attrs.environment_id)
    log.info("Creating Volume: {name}", name=attrs.name)

    with _phase("create", "", f"Error creating volume {attrs.name}"):
        client = meta.environment_client(attrs.environment_id)
        spec = VolumeCreate(name=attrs.name, driver=attrs.driver)
        if attrs.description:
            spec["description"] = attrs.description
        volume = client.volume.create(spec)

    _wait(CREATE_SETTLE, client, volume.id, meta)

    d.set_id(volume.id)
    log.info("Volume ID: {volume_id}", volume_id=volume.id)

    read(d, meta)


def read(d: ResourceData, meta: ClientResolver) -> None:
    """Refresh the attribute bag from the remote volume.

    A missing or removed volume clears the id without raising: the host
    runtime drops it from state.
    """
    volume_id = d.id
    environment_id = d.get("environment_id")
    log = logger.bind(resource=RESOURCE_NAME, volume_id=volume_id, environment_id=environment_id)
    log.info("Refreshing Volume: {volume_id}", volume_id=volume_id)

    with _phase("read", volume_id, f"Error reading volume ({volume_id})"):
        client = meta.environment_client(environment_id)
        volume = client.volume.by_id(volume_id)

    if volume is None:
        log.info("Volume {volume_id} not found", volume_id=volume_id)
        d.set_id("")
        return

    if removed(volume.state):
        log.info("Volume {volume_id} was removed on {removed}", volume_id=volume_id, removed=volume.removed)
        d.set_id("")
        return

    log.info("Volume Name: {name}", name=volume.name)
    VolumeAttributes.from_volume(volume, environment_id).apply_to(d)


def update(d: ResourceData, meta: ClientResolver) -> None:
    """Push name and description changes. The driver cannot change in place."""
    volume_id = d.id
    attrs = VolumeAttributes.from_resource_data(d)
    logger.bind(resource=RESOURCE_NAME, volume_id=volume_id).info(
        "Updating Volume: {volume_id}", volume_id=volume_id
    )

    with _phase("update", volume_id, f"Error updating volume ({volume_id})"):
        client = meta.environment_client(attrs.environment_id)
        volume = client.volume.by_id(volume_id)
        if volume is None:
            raise ResourceNotFoundError(volume_id)
        client.volume.update(volume, VolumePatch(name=attrs.name, description=attrs.description))

    read(d, meta)


def delete(d: ResourceData, meta: ClientResolver) -> None:
    """Drain, remove, and wait until the volume is gone.

    Rancher only accepts a remove request once the volume is no longer
    attached, and removal itself is asynchronous, hence two waits. The id is
    cleared only after the second one succeeds.
    """
    volume_id = d.id
    log = logger.bind(resource=RESOURCE_NAME, volume_id=volume_id)
    log.info("Deleting Volume: {volume_id}", volume_id=volume_id)

    with _phase("delete", volume_id, f"Error deleting volume ({volume_id})"):
        client = meta.environment_client(d.get("environment_id"))

    _wait(DELETE_DRAIN, client, volume_id, meta)

    with _phase(
        "refresh", volume_id, f"Failed to refresh state of detached or inactive volume ({volume_id})"
    ):
        volume = client.volume.by_id(volume_id)
        if volume is None:
            raise ResourceNotFoundError(volume_id)

    with _phase("remove", volume_id, f"Error removing volume ({volume_id})"):
        client.volume.action_remove(volume)

    _wait(DELETE_REMOVED, client, volume_id, meta)

    d.set_id("")
    log.info("Volume {volume_id} removed", volume_id=volume_id)


def import_state(raw_id: str, meta: ClientResolver) -> list[ResourceData]:
    """Import ``<environment_id>/<volume_id>`` or a bare ``<volume_id>``.

    Without an environment, one lookup through the global client recovers
    the owning environment from the volume itself.
    """
    environment_id, volume_id = split_id(raw_id)
    d = ResourceData(SCHEMA, id=volume_id)

    if environment_id:
        d.set("environment_id", environment_id)
        return [d]

    logger.bind(resource=RESOURCE_NAME, volume_id=volume_id).info(
        "Looking up environment of Volume: {volume_id}", volume_id=volume_id
    )
    with _phase("import", volume_id, f"Error importing volume ({volume_id})"):
        volume = meta.global_client().volume.by_id(volume_id)
        if volume is None:
            raise ResourceNotFoundError(volume_id)

    d.set("environment_id", volume.account_id)
    return [d]


def resource() -> Resource:
    return Resource(
        schema=SCHEMA,
        create=create,
        read=read,
        update=update,
        delete=delete,
        importer=import_state,
    )


__all__ = [
    "CREATE_SETTLE",
    "DELETE_DRAIN",
    "DELETE_REMOVED",
    "RESOURCE_NAME",
    "SCHEMA",
    "VolumeAttributes",
    "WaitPhase",
    "create",
    "delete",
    "import_state",
    "read",
    "resource",
    "update",
    "volume_state_refresh",
]
