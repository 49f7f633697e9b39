"""Rancher API client."""

from .client import RancherClient, VolumeClient
from .types import Volume, VolumeCreate, VolumePatch

__all__ = [
    "RancherClient",
    "Volume",
    "VolumeClient",
    "VolumeCreate",
    "VolumePatch",
]
