"""Array registry for {{#each}} loops.

An array is a named list of records. Each record is interpreted through the
array's schema, an ordered list of field names. Arrays without a declared
schema use `DEFAULT_SCHEMA`, the SSH host layout:

    name|hostname|user|identity|extra
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Optional

from .config import Record, VariablesFile

DEFAULT_SCHEMA: tuple[str, ...] = ("name", "hostname", "user", "identity", "extra")

RECORD_SEPARATOR = "|"


@dataclass(frozen=True)
class ArrayRecord:
    """One record: positional values, or named values for mapping records."""

    values: tuple[str, ...] = ()
    named: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, record: Record) -> "ArrayRecord":
        if isinstance(record, Mapping):
            named = {str(k).lower(): str(v) for k, v in record.items()}
            return cls(values=tuple(named.values()), named=named)
        if isinstance(record, (list, tuple)):
            return cls(values=tuple(str(v) for v in record))
        return cls(values=tuple(str(record).split(RECORD_SEPARATOR)))

    @property
    def raw(self) -> str:
        return RECORD_SEPARATOR.join(self.values)

    def fields(self, schema: Sequence[str]) -> dict[str, str]:
        """Associate values with field names; missing trailing fields are ''."""
        if self.named:
            bound = {name: self.named.get(name, "") for name in schema}
            for name, value in self.named.items():
                bound.setdefault(name, value)
            return bound
        return {
            name: self.values[i] if i < len(self.values) else ""
            for i, name in enumerate(schema)
        }


class ArrayRegistry:
    """Named arrays plus their schemas."""

    def __init__(
        self,
        arrays: Optional[Mapping[str, Sequence[Record]]] = None,
        schemas: Optional[Mapping[str, Sequence[str]]] = None,
        default_schema: Sequence[str] = DEFAULT_SCHEMA,
    ) -> None:
        self._arrays: dict[str, tuple[ArrayRecord, ...]] = {
            name.lower(): tuple(ArrayRecord.parse(r) for r in records)
            for name, records in (arrays or {}).items()
        }
        self._schemas: dict[str, tuple[str, ...]] = {
            name.lower(): tuple(f.lower() for f in fields)
            for name, fields in (schemas or {}).items()
        }
        self.default_schema = tuple(default_schema)

    @classmethod
    def from_variables_file(cls, variables: VariablesFile) -> "ArrayRegistry":
        return cls(arrays=variables.arrays, schemas=variables.schemas)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._arrays

    def __len__(self) -> int:
        return len(self._arrays)

    def __iter__(self) -> Iterator[str]:
        return iter(self._arrays)

    def names(self) -> list[str]:
        return sorted(self._arrays)

    def get(self, name: str) -> tuple[ArrayRecord, ...]:
        """Records of an array; an unknown array is empty."""
        return self._arrays.get(name.lower(), ())

    def schema_for(self, name: str) -> tuple[str, ...]:
        return self._schemas.get(name.lower(), self.default_schema)

    def has_schema(self, name: str) -> bool:
        return name.lower() in self._schemas

    def bind(self, name: str, index: int) -> dict[str, str]:
        """Build a fresh loop scope for one iteration of `name`.

        Besides the schema fields the scope has `this` (the raw record),
        `@index`, `@first` and `@last`.
        """
        records = self.get(name)
        record = records[index]
        scope = record.fields(self.schema_for(name))
        scope["this"] = record.raw
        scope["@index"] = str(index)
        scope["@first"] = "true" if index == 0 else ""
        scope["@last"] = "true" if index == len(records) - 1 else ""
        return scope
