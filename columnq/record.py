"""Columnar record batches with typed schemas."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field as dc_field
from enum import Enum
from typing import Any

from .error import GenericError


class DataType(Enum):
    """Logical type of a column."""

    NULL = "Null"
    BOOLEAN = "Boolean"
    INT64 = "Int64"
    FLOAT64 = "Float64"
    UTF8 = "Utf8"
    DATE32 = "Date32"
    DATE64 = "Date64"
    TIMESTAMP_SECOND = "Timestamp(Second)"
    TIMESTAMP_MILLISECOND = "Timestamp(Millisecond)"
    TIMESTAMP_MICROSECOND = "Timestamp(Microsecond)"
    TIMESTAMP_NANOSECOND = "Timestamp(Nanosecond)"
    TIME32_SECOND = "Time32(Second)"
    TIME32_MILLISECOND = "Time32(Millisecond)"
    TIME64_MICROSECOND = "Time64(Microsecond)"
    TIME64_NANOSECOND = "Time64(Nanosecond)"

    def accepts(self, value: Any) -> bool:
        """Whether a Python value can be stored in a column of this type."""
        if value is None:
            return True
        if self is DataType.NULL:
            return False
        if self is DataType.BOOLEAN:
            return isinstance(value, bool)
        if self is DataType.UTF8:
            return isinstance(value, str)
        if isinstance(value, bool):
            return False
        if self is DataType.FLOAT64:
            return isinstance(value, (int, float))
        return isinstance(value, int)


@dataclass(frozen=True)
class Field:
    """A named, typed column slot in a schema."""

    name: str
    data_type: DataType
    nullable: bool = True


@dataclass(frozen=True)
class Schema:
    """An ordered collection of fields."""

    fields: tuple[Field, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))

    @property
    def names(self) -> list[str]:
        return [f.name for f in self.fields]

    def __len__(self) -> int:
        return len(self.fields)

    def __iter__(self) -> Iterator[Field]:
        return iter(self.fields)

    def index_of(self, name: str) -> int:
        """Position of the field called ``name``."""
        for position, f in enumerate(self.fields):
            if f.name == name:
                return position
        raise GenericError(f'Unable to get field named "{name}". Valid fields: {self.names}')

    def field(self, index: int) -> Field:
        return self.fields[index]


@dataclass(frozen=True)
class RecordBatch:
    """Equal-length columns of values matching a schema."""

    schema: Schema
    columns: tuple[tuple[Any, ...], ...] = dc_field(default=())

    def __post_init__(self) -> None:
        columns = tuple(tuple(c) for c in self.columns)
        object.__setattr__(self, "columns", columns)
        if len(columns) != len(self.schema):
            raise GenericError(
                f"number of columns({len(columns)}) must match number of fields"
                f"({len(self.schema)}) in schema"
            )
        lengths = {len(c) for c in columns}
        if len(lengths) > 1:
            raise GenericError("all columns in a record batch must have the same length")
        for f, values in zip(self.schema.fields, columns):
            for value in values:
                if value is None and not f.nullable:
                    raise GenericError(f"Column '{f.name}' is declared as non-nullable but contains null values")
                if not f.data_type.accepts(value):
                    raise GenericError(
                        f"Column '{f.name}' of type {f.data_type.value} cannot hold value {value!r}"
                    )

    @property
    def num_rows(self) -> int:
        return len(self.columns[0]) if self.columns else 0

    @property
    def num_columns(self) -> int:
        return len(self.columns)

    def column(self, index: int | str) -> tuple[Any, ...]:
        """Values of a column, by position or by name."""
        if isinstance(index, str):
            index = self.schema.index_of(index)
        return self.columns[index]

    def rows(self) -> Iterator[dict[str, Any]]:
        """Yield each row as a mapping from column name to value."""
        names = self.schema.names
        for values in zip(*self.columns):
            yield dict(zip(names, values))

    @classmethod
    def from_rows(
        cls, schema: Schema, rows: Iterable[Mapping[str, Any] | Sequence[Any]]
    ) -> "RecordBatch":
        """Build a batch from rows given as mappings or as positional sequences."""
        columns: list[list[Any]] = [[] for _ in schema.fields]
        for row in rows:
            if isinstance(row, Mapping):
                values = [row.get(f.name) for f in schema.fields]
            else:
                values = list(row)
                if len(values) != len(schema):
                    raise GenericError(
                        f"row has {len(values)} values but schema has {len(schema)} fields"
                    )
            for column, value in zip(columns, values):
                column.append(value)
        return cls(schema, tuple(tuple(c) for c in columns))