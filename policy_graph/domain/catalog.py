"""
Type Catalog: the externally supplied table of variable identifiers.

The surrounding attendance application owns the variables; the editor
only needs each key's declared value type to type the output port of
``Variable`` nodes, and the ordered entry list for the selection UI.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from pydantic import BaseModel, ConfigDict, TypeAdapter, field_validator

from policy_graph.domain.enums import ValueType

logger = logging.getLogger(__name__)


class CatalogEntry(BaseModel):
    """One variable usable inside a Variable node."""

    model_config = ConfigDict(frozen=True)

    label: str
    key: str
    type: ValueType

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("catalog key cannot be empty")
        return v

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: ValueType) -> ValueType:
        if v == ValueType.ANY:
            raise ValueError("catalog variables must declare number, boolean or string")
        return v


# Variables exposed by the attendance policy evaluator.
DEFAULT_ATTENDANCE_VARIABLES: tuple[CatalogEntry, ...] = (
    CatalogEntry(label="Minutes Late", key="minutes_late", type=ValueType.NUMBER),
    CatalogEntry(label="Total Hours", key="total_hours", type=ValueType.NUMBER),
    CatalogEntry(label="Total Hours Today", key="total_hours_today", type=ValueType.NUMBER),
    CatalogEntry(label="First Check-in Hour", key="first_time_in_hour", type=ValueType.NUMBER),
    CatalogEntry(label="Last Check-out Hour", key="last_time_out_hour", type=ValueType.NUMBER),
    CatalogEntry(label="Is First Session", key="is_first_session", type=ValueType.BOOLEAN),
)

_entries_adapter = TypeAdapter(list[CatalogEntry])


class TypeCatalog:
    """Read-only, ordered mapping of variable key -> declared type."""

    def __init__(self, entries: Iterable[CatalogEntry]):
        self._entries: tuple[CatalogEntry, ...] = tuple(entries)
        self._by_key: dict[str, CatalogEntry] = {}
        for entry in self._entries:
            if entry.key in self._by_key:
                raise ValueError(f"Duplicate catalog key '{entry.key}'")
            self._by_key[entry.key] = entry

    @classmethod
    def default(cls) -> TypeCatalog:
        return cls(DEFAULT_ATTENDANCE_VARIABLES)

    @classmethod
    def from_records(cls, records: list[dict]) -> TypeCatalog:
        """Build a catalog from ``[{label, key, type}, ...]`` records."""
        return cls(_entries_adapter.validate_python(records))

    @classmethod
    def from_file(cls, path: str | Path) -> TypeCatalog:
        """Load a catalog from a JSON file holding a list of records."""
        records = json.loads(Path(path).read_text(encoding="utf-8"))
        catalog = cls.from_records(records)
        logger.info("Loaded type catalog from %s with %d variables", path, len(catalog))
        return catalog

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[CatalogEntry, ...]:
        return self._entries

    def get(self, key: str) -> CatalogEntry | None:
        return self._by_key.get(key)

    def type_of(self, key: str) -> ValueType:
        """
        Declared type of ``key``.

        Keys missing from the catalog resolve to ANY so that leniently
        imported rule trees stay connectable.
        """
        entry = self._by_key.get(key)
        return entry.type if entry else ValueType.ANY

    def default_key(self) -> str | None:
        return self._entries[0].key if self._entries else None


def load_catalog(path: str | None) -> TypeCatalog:
    """Catalog from ``path`` when configured, else the built-in attendance catalog."""
    if path:
        return TypeCatalog.from_file(path)
    return TypeCatalog.default()
