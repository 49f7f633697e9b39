"""Resource handlers exposed by the provider."""

from . import volume

__all__ = ["volume"]
