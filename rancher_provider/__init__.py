"""Rancher provider: volume lifecycle management for an infrastructure-as-code host.

Example:
    from rancher_provider import Provider

    provider = Provider()
    meta = provider.configure()
    volumes = provider.resource("rancher_volume")
"""

from loguru import logger

from rancher_provider.config import ClientResolver, Config, ProviderSettings, load_settings
from rancher_provider.errors import (
    ConfigError,
    ProviderError,
    ResourceNotFoundError,
    ResourceOperationError,
    TransportError,
    UnexpectedStateError,
    WaitError,
    WaitTimeoutError,
)
from rancher_provider.observability import LogConfig, setup_logging, teardown_logging
from rancher_provider.provider import Provider
from rancher_provider.schema import Field, Resource, ResourceData
from rancher_provider.wait import StateChangeConf, StateClass

# Disabled until the host enables it (library behaviour)
logger.disable("rancher_provider")

__all__ = [
    "ClientResolver",
    "Config",
    "ConfigError",
    "Field",
    "LogConfig",
    "Provider",
    "ProviderError",
    "ProviderSettings",
    "Resource",
    "ResourceData",
    "ResourceNotFoundError",
    "ResourceOperationError",
    "StateChangeConf",
    "StateClass",
    "TransportError",
    "UnexpectedStateError",
    "WaitError",
    "WaitTimeoutError",
    "load_settings",
    "setup_logging",
    "teardown_logging",
]
