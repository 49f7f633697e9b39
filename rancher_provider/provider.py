"""Provider entry point: resource registry and configuration.

The host runtime calls ``configure`` once per run and passes the returned
Config to every lifecycle callback of every resource.

Example:
    provider = Provider()
    with provider.configure(api_url="https://rancher.example.com") as meta:
        res = provider.resource("rancher_volume")
        d = res.data({"name": "foo", "driver": "rancher-nfs", "environment_id": "1a5"})
        res.create(d, meta)
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from loguru import logger

from rancher_provider.config import Config, load_settings
from rancher_provider.resources import volume
from rancher_provider.schema import Resource


class Provider:
    """Registry of the resource types this provider manages."""

    def __init__(self, resources: Mapping[str, Callable[[], Resource]] | None = None) -> None:
        factories = resources or {volume.RESOURCE_NAME: volume.resource}
        self._resources = {name: factory() for name, factory in factories.items()}

    @property
    def resources(self) -> Mapping[str, Resource]:
        return self._resources

    def resource(self, name: str) -> Resource:
        try:
            return self._resources[name]
        except KeyError:
            raise KeyError(
                f"Unknown resource type '{name}'. Available: {', '.join(self._resources)}"
            ) from None

    def configure(
        self,
        *,
        project_dir: Path | None = None,
        global_path: Path | None = None,
        **overrides: Any,
    ) -> Config:
        settings = load_settings(project_dir=project_dir, global_path=global_path, **overrides)
        logger.bind(component="provider").info("Configured Rancher provider for {url}", url=settings.api_url)
        return Config(settings)


__all__ = ["Provider"]
