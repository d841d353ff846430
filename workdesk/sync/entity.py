"""Entity specs — boundary mapping between raw row-store rows and typed records."""

from __future__ import annotations

import enum
import logging
from typing import Any, Generic, Hashable, Mapping, Optional, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class EntitySpec(Generic[T]):
    """How one entity type is stored, keyed and mapped.

    ``key_fields`` is the cache key: ``("id",)`` for surrogate-keyed rows, the
    natural key (e.g. ``("profile_id", "date")``) for upserted rows. The
    natural key doubles as the upsert conflict target.
    """

    def __init__(
        self,
        name: str,
        table: str,
        model: type[T],
        key_fields: tuple[str, ...] = ("id",),
    ) -> None:
        self.name = name
        self.table = table
        self.model = model
        self.key_fields = key_fields
        self._key_adapters = {
            f: TypeAdapter(model.model_fields[f].annotation) for f in key_fields
        }

    @property
    def conflict_key(self) -> tuple[str, ...]:
        return self.key_fields

    def key(self, entity: T) -> Hashable:
        if len(self.key_fields) == 1:
            return getattr(entity, self.key_fields[0])
        return tuple(getattr(entity, f) for f in self.key_fields)

    def row_key(self, row: Mapping[str, Any]) -> Hashable:
        """Cache key of a raw row, validated to the model's key types."""
        values = tuple(
            self._key_adapters[f].validate_python(row[f]) for f in self.key_fields
        )
        return values[0] if len(values) == 1 else values

    def from_row(self, row: Mapping[str, Any]) -> Optional[T]:
        """Map a raw row onto the model; malformed rows are logged and dropped."""
        try:
            return self.model.model_validate(dict(row))
        except ValidationError as exc:
            logger.warning(
                "Rejected malformed %s row %r: %s",
                self.name, row.get("id"), exc.errors(include_url=False),
            )
            return None

    def to_row(self, entity: T) -> dict[str, Any]:
        return dump_values(entity.model_dump())

    def key_filter(self, key: Hashable) -> dict[str, Any]:
        values = (key,) if len(self.key_fields) == 1 else key
        return dict(zip(self.key_fields, values))


def dump_values(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Plain column values: enums become their stored value, everything else passes."""
    return {
        k: v.value if isinstance(v, enum.Enum) else v
        for k, v in fields.items()
    }
