"""Host-runtime boundary: declared fields, attribute bag, resource definition.

The host runtime owns validation, diffing and persistence. The provider only
sees a flat string-keyed attribute bag (ResourceData) whose keys are fixed by
the resource schema; an empty id tells the host to drop the resource from
its state.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rancher_provider.config import ClientResolver


@dataclass(frozen=True, slots=True)
class Field:
    """Declared attribute of a resource. Values are always strings."""

    required: bool = False
    optional: bool = False
    computed: bool = False
    force_new: bool = False
    default: str = ""


type Schema = Mapping[str, Field]


class ResourceData:
    """Flat attribute bag for one resource instance."""

    __slots__ = ("_schema", "_id", "_attrs")

    def __init__(
        self,
        schema: Schema,
        attributes: Mapping[str, str] | None = None,
        *,
        id: str = "",
    ) -> None:
        self._schema = schema
        self._id = id
        self._attrs = {k: f.default for k, f in schema.items() if k != "id"}
        for key, value in (attributes or {}).items():
            if key == "id":
                self._id = value
            else:
                self.set(key, value)

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, value: str) -> None:
        """Set the resource id. An empty id marks the resource as gone."""
        self._id = value

    def get(self, key: str) -> str:
        if key == "id":
            return self._id
        self._check(key)
        return self._attrs[key]

    def set(self, key: str, value: str | None) -> None:
        if key == "id":
            raise KeyError("use set_id() to change the resource id")
        self._check(key)
        self._attrs[key] = value or ""

    def attributes(self) -> dict[str, str]:
        return {"id": self._id, **self._attrs}

    def _check(self, key: str) -> None:
        if key not in self._schema:
            raise KeyError(f"'{key}' is not declared in the schema. Valid: {', '.join(self._schema)}")

    def __repr__(self) -> str:
        return f"ResourceData({self.attributes()!r})"


type LifecycleFunc = Callable[[ResourceData, ClientResolver], None]
type ImportFunc = Callable[[str, ClientResolver], list[ResourceData]]


@dataclass(frozen=True, slots=True)
class Resource:
    """Lifecycle callbacks and schema for one resource type."""

    schema: Schema
    create: LifecycleFunc
    read: LifecycleFunc
    update: LifecycleFunc
    delete: LifecycleFunc
    importer: ImportFunc | None = None

    def data(self, attributes: Mapping[str, str] | None = None, *, id: str = "") -> ResourceData:
        return ResourceData(self.schema, attributes, id=id)


__all__ = ["Field", "ImportFunc", "LifecycleFunc", "Resource", "ResourceData", "Schema"]
