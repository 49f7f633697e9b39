from __future__ import annotations

from dataclasses import replace

import pytest

from rancher_provider.config import ProviderSettings
from rancher_provider.rancher import Volume, VolumeCreate, VolumePatch


class FakeVolumeClient:
    """In-memory ``volumes`` collection.

    ``script(volume_id, *states)`` makes successive ``by_id`` calls report
    the given states; the last one sticks. A ``None`` state means the volume
    is absent on that read.
    """

    def __init__(self, account_id: str) -> None:
        self.account_id = account_id
        self.volumes: dict[str, Volume] = {}
        self.scripts: dict[str, list[str | None]] = {}
        self.create_states: list[str | None] = []
        self.calls: list[tuple[str, str]] = []
        self.errors: dict[str, Exception] = {}

    def add(self, volume: Volume) -> Volume:
        self.volumes[volume.id] = volume
        return volume

    def script(self, volume_id: str, *states: str | None) -> None:
        self.scripts[volume_id] = list(states)

    def count(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)

    def _maybe_fail(self, op: str) -> None:
        if op in self.errors:
            raise self.errors[op]

    def create(self, spec: VolumeCreate) -> Volume:
        self.calls.append(("create", spec["name"]))
        self._maybe_fail("create")
        volume = self.add(
            Volume(
                id=f"vol-{len(self.volumes) + 1}",
                state="requested",
                name=spec["name"],
                driver=spec["driver"],
                description=spec.get("description", ""),
                account_id=self.account_id,
            )
        )
        if self.create_states:
            self.script(volume.id, *self.create_states)
        return volume

    def by_id(self, volume_id: str) -> Volume | None:
        self.calls.append(("by_id", volume_id))
        self._maybe_fail("by_id")
        script = self.scripts.get(volume_id)
        if script:
            state = script.pop(0) if len(script) > 1 else script[0]
            if state is None:
                return None
            self.volumes[volume_id] = replace(self.volumes[volume_id], state=state)
        return self.volumes.get(volume_id)

    def update(self, volume: Volume, patch: VolumePatch) -> Volume:
        self.calls.append(("update", volume.id))
        self._maybe_fail("update")
        updated = replace(self.volumes[volume.id], **patch)
        self.volumes[volume.id] = updated
        return updated

    def action_remove(self, volume: Volume) -> Volume:
        self.calls.append(("action_remove", volume.id))
        self._maybe_fail("action_remove")
        return volume


class FakeRancherClient:
    def __init__(self, base_url: str, account_id: str) -> None:
        self.base_url = base_url
        self.volume = FakeVolumeClient(account_id)

    def close(self) -> None:
        pass


class FakeResolver:
    """ClientResolver double: one fake client per environment, recorded sleeps."""

    def __init__(self, settings: ProviderSettings | None = None) -> None:
        self.settings = settings or ProviderSettings(
            api_url="http://rancher.test",
            wait_timeout=60.0,
            wait_delay=1.0,
            wait_min_timeout=3.0,
        )
        self.sleeps: list[float] = []
        self.clients: dict[str, FakeRancherClient] = {}
        self.global_calls = 0
        self._global = FakeRancherClient("http://rancher.test/v2-beta", "")

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)

    def environment_client(self, environment_id: str) -> FakeRancherClient:
        if environment_id not in self.clients:
            self.clients[environment_id] = FakeRancherClient(
                f"http://rancher.test/v2-beta/projects/{environment_id}", environment_id
            )
        return self.clients[environment_id]

    def global_client(self) -> FakeRancherClient:
        self.global_calls += 1
        return self._global


@pytest.fixture
def meta() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def env1(meta: FakeResolver) -> FakeVolumeClient:
    return meta.environment_client("env1").volume
