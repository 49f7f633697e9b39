"""TOML- and environment-based provider configuration.

Loads ~/.rancher-provider/defaults.toml (global) and rancher-provider.toml
(project), merges them, applies RANCHER_* environment variables and explicit
overrides, and builds the shared Config object that hands out API clients
scoped to an environment.

Example rancher-provider.toml:

    [provider]
    api_url = "https://rancher.example.com"
    access_key = "..."
    secret_key = "..."
    wait_timeout = 900
"""

from __future__ import annotations

import os
import time
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Protocol

from loguru import logger

from rancher_provider.errors import ConfigError
from rancher_provider.rancher import RancherClient

type RawConfig = dict[str, Any]
type ClientFactory = Callable[..., RancherClient]

GLOBAL_CONFIG_PATH = Path.home() / ".rancher-provider" / "defaults.toml"
PROJECT_CONFIG_NAME = "rancher-provider.toml"

ENV_VARS: Mapping[str, str] = {
    "RANCHER_URL": "api_url",
    "RANCHER_ACCESS_KEY": "access_key",
    "RANCHER_SECRET_KEY": "secret_key",
}

API_VERSION = "v2-beta"


@dataclass(frozen=True, slots=True)
class ProviderSettings:
    """Connection settings and convergence defaults.

    Args:
        api_url: Rancher server URL. A trailing /v1 or /v2-beta is accepted.
        access_key: API access key. Empty for anonymous access.
        secret_key: API secret key.
        request_timeout: Per-request HTTP timeout in seconds.
        wait_timeout: Wall-clock budget of each convergence wait, in seconds.
        wait_delay: Wait before the first poll of a convergence, in seconds.
        wait_min_timeout: Smallest interval between polls, in seconds.
    """

    api_url: str = ""
    access_key: str = ""
    secret_key: str = ""
    request_timeout: float = 30.0
    wait_timeout: float = 600.0
    wait_delay: float = 1.0
    wait_min_timeout: float = 3.0


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("provider", {})
    return merged


def load_settings(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> ProviderSettings:
    """Resolve settings: defaults < global TOML < project TOML < env < overrides."""
    raw = dict(load_config(project_dir=project_dir, global_path=global_path)["provider"])

    env = os.environ if environ is None else environ
    for var, key in ENV_VARS.items():
        if env.get(var):
            raw[key] = env[var]

    raw.update({k: v for k, v in overrides.items() if v is not None})

    known = {f.name for f in fields(ProviderSettings)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(
            f"Unknown provider setting(s): {', '.join(unknown)}. Valid: {', '.join(sorted(known))}"
        )
    return ProviderSettings(**raw)


def normalize_api_url(url: str) -> str:
    """Strip trailing slashes and any API version suffix."""
    url = url.rstrip("/")
    for suffix in ("/v1", f"/{API_VERSION}"):
        url = url.removesuffix(suffix)
    return url


# =============================================================================
# Scope Resolver
# =============================================================================


class ClientResolver(Protocol):
    """Shared connection configuration handed to every lifecycle callback."""

    @property
    def settings(self) -> ProviderSettings: ...

    def sleep(self, seconds: float) -> None: ...

    def environment_client(self, environment_id: str) -> RancherClient: ...

    def global_client(self) -> RancherClient: ...


class Config:
    """Resolves API clients per environment, caching one client per scope."""

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        client_factory: ClientFactory = RancherClient,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not settings.api_url:
            raise ConfigError("api_url is required (set RANCHER_URL or [provider].api_url)")
        self._settings = settings
        self._root = normalize_api_url(settings.api_url)
        self._factory = client_factory
        self._sleep = sleep
        self._clients: dict[str, RancherClient] = {}
        self._log = logger.bind(component="config")

    @property
    def settings(self) -> ProviderSettings:
        return self._settings

    def sleep(self, seconds: float) -> None:
        self._sleep(seconds)

    def environment_client(self, environment_id: str) -> RancherClient:
        if not environment_id:
            raise ConfigError("environment_id is required to build a scoped client")
        return self._client(f"{self._root}/{API_VERSION}/projects/{environment_id}")

    def global_client(self) -> RancherClient:
        return self._client(f"{self._root}/{API_VERSION}")

    def _client(self, base_url: str) -> RancherClient:
        if base_url not in self._clients:
            self._log.debug("Creating client for {url}", url=base_url)
            self._clients[base_url] = self._factory(
                base_url,
                self._settings.access_key,
                self._settings.secret_key,
                timeout=self._settings.request_timeout,
                sleep=self._sleep,
            )
        return self._clients[base_url]

    def close(self) -> None:
        for client in self._clients.values():
            client.close()
        self._clients.clear()

    def __enter__(self) -> Config:
        return self

    def __exit__(self, *_: Any) -> None:
        self.close()


__all__ = [
    "ClientResolver",
    "Config",
    "ProviderSettings",
    "load_config",
    "load_settings",
    "normalize_api_url",
]
