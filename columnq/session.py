"""In-memory tables and a query engine over them."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Sequence
from contextlib import closing
from dataclasses import dataclass, replace
from functools import partial
from typing import Any, NamedTuple

from .error import GenericError
from .expr import BinaryExpr, Column, Expr, Literal, SortExpr
from .record import DataType, Field, RecordBatch, Schema

_CATALOG = "columnq"
_SCHEMA = "public"

_PLAIN_DECLTYPES = {
    DataType.NULL: "",
    DataType.INT64: "INTEGER",
    DataType.FLOAT64: "REAL",
    DataType.UTF8: "TEXT",
}

_TEMPORAL_TYPES = (
    DataType.DATE32,
    DataType.DATE64,
    DataType.TIMESTAMP_SECOND,
    DataType.TIMESTAMP_MILLISECOND,
    DataType.TIMESTAMP_MICROSECOND,
    DataType.TIMESTAMP_NANOSECOND,
    DataType.TIME32_SECOND,
    DataType.TIME32_MILLISECOND,
    DataType.TIME64_MICROSECOND,
    DataType.TIME64_NANOSECOND,
)


class _Tagged(NamedTuple):
    value: int
    data_type: DataType


def _tag(data_type: DataType, raw: bytes) -> _Tagged:
    return _Tagged(int(raw), data_type)


def _decltype(data_type: DataType) -> str:
    return _PLAIN_DECLTYPES.get(data_type, f"CQ_{data_type.name}")


sqlite3.register_converter("CQ_BOOLEAN", lambda raw: bool(int(raw)))
for _temporal in _TEMPORAL_TYPES:
    sqlite3.register_converter(f"CQ_{_temporal.name}", partial(_tag, _temporal))


def _referenced(expr: Expr | SortExpr) -> set[str]:
    if isinstance(expr, Column):
        return {expr.name}
    if isinstance(expr, BinaryExpr):
        return _referenced(expr.left) | _referenced(expr.right)
    if isinstance(expr, SortExpr):
        return _referenced(expr.expr)
    if isinstance(expr, Literal):
        return set()
    raise GenericError(f"unsupported expression: {expr!r}")


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _infer(values: Sequence[Any]) -> tuple[DataType, list[Any]]:
    tags = {v.data_type for v in values if isinstance(v, _Tagged)}
    if tags:
        values = [v.value if isinstance(v, _Tagged) else v for v in values]
        if len(tags) == 1 and all(
            v is None or (isinstance(v, int) and not isinstance(v, bool)) for v in values
        ):
            return tags.pop(), list(values)
    present = [v for v in values if v is not None]
    if not present:
        return DataType.NULL, list(values)
    if any(isinstance(v, (bytes, bytearray)) for v in present):
        raise GenericError("binary values are not supported in query results")
    if all(isinstance(v, bool) for v in present):
        return DataType.BOOLEAN, list(values)
    if any(isinstance(v, str) for v in present):
        return DataType.UTF8, [None if v is None else _text(v) for v in values]
    if any(isinstance(v, float) for v in present):
        return DataType.FLOAT64, [None if v is None else float(v) for v in values]
    return DataType.INT64, [None if v is None else int(v) for v in values]


def _rows_to_batches(names: list[str], rows: list[tuple[Any, ...]]) -> list[RecordBatch]:
    if not rows:
        return []
    fields = []
    columns = []
    for name, values in zip(names, zip(*rows)):
        data_type, converted = _infer(values)
        fields.append(Field(name, data_type, True))
        columns.append(tuple(converted))
    return [RecordBatch(Schema(tuple(fields)), tuple(columns))]


class SessionContext:
    """A catalog of named in-memory tables that can be queried with SQL."""

    def __init__(self) -> None:
        self._tables: dict[str, tuple[Schema, tuple[RecordBatch, ...]]] = {}

    def register_table(self, name: str, batches: RecordBatch | Iterable[RecordBatch]) -> None:
        """Register record batches under a table name."""
        if isinstance(batches, RecordBatch):
            batches = (batches,)
        batches = tuple(batches)
        if not batches:
            raise GenericError("a table needs at least one record batch to define its schema")
        schema = batches[0].schema
        if not len(schema):
            raise GenericError("a table needs at least one column")
        if len(set(n.lower() for n in schema.names)) != len(schema):
            raise GenericError(f"duplicate column names in schema: {schema.names}")
        if any(batch.schema != schema for batch in batches):
            raise GenericError("all record batches of a table must share one schema")
        if any(existing.lower() == name.lower() for existing in self._tables):
            raise GenericError(f"The table {name} already exists")
        self._tables[name] = (schema, batches)

    def deregister_table(self, name: str) -> tuple[RecordBatch, ...] | None:
        """Remove a table, returning its batches if it was registered."""
        entry = self._tables.pop(name, None)
        return None if entry is None else entry[1]

    def _entry(self, name: str) -> tuple[Schema, tuple[RecordBatch, ...]]:
        try:
            return self._tables[name]
        except KeyError:
            raise GenericError(f"table '{name}' not found") from None

    def table_schema(self, name: str) -> Schema:
        return self._entry(name)[0]

    def table(self, name: str) -> "DataFrame":
        """A data frame that reads the whole table."""
        schema = self.table_schema(name)
        return DataFrame(self, str(Column(name)), tuple(schema.names))

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(":memory:", detect_types=sqlite3.PARSE_DECLTYPES)
        try:
            conn.execute("ATTACH DATABASE ':memory:' AS information_schema")
            conn.execute(
                "CREATE TABLE information_schema.tables "
                "(table_catalog TEXT, table_schema TEXT, table_name TEXT, table_type TEXT)"
            )
            conn.execute(
                "CREATE TABLE information_schema.columns "
                "(table_catalog TEXT, table_schema TEXT, table_name TEXT, column_name TEXT, "
                "ordinal_position INTEGER, data_type TEXT, is_nullable TEXT)"
            )
            for name, (schema, batches) in self._tables.items():
                table = str(Column(name))
                columns = ", ".join(
                    f"{Column(f.name)} {_decltype(f.data_type)}".rstrip() for f in schema
                )
                conn.execute(f"CREATE TABLE main.{table} ({columns})")
                placeholders = ", ".join("?" for _ in schema.fields)
                insert = f"INSERT INTO main.{table} VALUES ({placeholders})"
                for batch in batches:
                    conn.executemany(insert, zip(*batch.columns))
                conn.execute(
                    "INSERT INTO information_schema.tables VALUES (?, ?, ?, ?)",
                    (_CATALOG, _SCHEMA, name, "BASE TABLE"),
                )
                conn.executemany(
                    "INSERT INTO information_schema.columns VALUES (?, ?, ?, ?, ?, ?, ?)",
                    [
                        (
                            _CATALOG,
                            _SCHEMA,
                            name,
                            f.name,
                            position,
                            f.data_type.value,
                            "YES" if f.nullable else "NO",
                        )
                        for position, f in enumerate(schema.fields)
                    ],
                )
        except sqlite3.Error as exc:
            conn.close()
            raise GenericError(f"Failed to load tables: {exc}") from exc
        return conn

    def execute(self, sql: str) -> list[RecordBatch]:
        """Run one SQL statement and return its result as record batches."""
        if not sql.strip():
            raise GenericError("empty SQL query")
        with closing(self._connect()) as conn:
            try:
                cursor = conn.execute(sql)
            except (sqlite3.Error, sqlite3.Warning) as exc:
                raise GenericError(f"Error during planning: {exc}") from exc
            if cursor.description is None:
                return []
            names = [d[0] for d in cursor.description]
            try:
                rows = cursor.fetchall()
            except (sqlite3.Error, sqlite3.Warning) as exc:
                raise GenericError(f"Execution error: {exc}") from exc
        return _rows_to_batches(names, rows)


@dataclass(frozen=True)
class DataFrame:
    """A lazily built query over a registered table."""

    ctx: SessionContext
    source: str
    column_names: tuple[str, ...]
    predicates: tuple[Expr, ...] = ()
    projection: tuple[str, ...] | None = None
    order: tuple[SortExpr, ...] = ()
    skip: int = 0
    fetch: int | None = None

    def _check(self, names: Iterable[str]) -> None:
        for name in names:
            if name not in self.column_names:
                raise GenericError(
                    f"No field named {name!r}. Valid fields are {list(self.column_names)}"
                )

    def _limited(self) -> bool:
        return self.skip > 0 or self.fetch is not None

    def _wrapped(self) -> "DataFrame":
        if not self._limited():
            return self
        return DataFrame(self.ctx, f"({self.to_sql()})", self.column_names)

    def filter(self, predicate: Expr) -> "DataFrame":
        """Keep rows for which the predicate holds."""
        self._check(sorted(_referenced(predicate)))
        df = self._wrapped()
        return replace(df, predicates=df.predicates + (predicate,))

    def select_columns(self, columns: Iterable[str]) -> "DataFrame":
        """Keep only the named columns, in the given order."""
        columns = tuple(columns)
        if not columns:
            raise GenericError("projection requires at least one column")
        self._check(columns)
        return replace(self, projection=columns, column_names=columns)

    def sort(self, sort_exprs: Iterable[SortExpr]) -> "DataFrame":
        """Order rows by the sort keys; earlier sorts break ties."""
        sort_exprs = tuple(sort_exprs)
        if not sort_exprs:
            return self
        for expr in sort_exprs:
            if not isinstance(expr, SortExpr):
                raise GenericError(f"expected a sort expression, got: {expr!r}")
            self._check(sorted(_referenced(expr)))
        df = self._wrapped()
        return replace(df, order=sort_exprs + df.order)

    def limit(self, skip: int, fetch: int | None) -> "DataFrame":
        """Skip ``skip`` rows, then keep at most ``fetch`` rows (all if None)."""
        if skip < 0 or (fetch is not None and fetch < 0):
            raise GenericError(f"invalid limit: skip={skip}, fetch={fetch}")
        if self.fetch is None:
            new_fetch = fetch
        else:
            remaining = max(self.fetch - skip, 0)
            new_fetch = remaining if fetch is None else min(remaining, fetch)
        return replace(self, skip=self.skip + skip, fetch=new_fetch)

    def to_sql(self) -> str:
        """The SQL statement this data frame runs."""
        if self.projection is None:
            columns = "*"
        else:
            columns = ", ".join(str(Column(c)) for c in self.projection)
        parts = [f"SELECT {columns} FROM {self.source}"]
        if self.predicates:
            parts.append("WHERE " + " AND ".join(str(p) for p in self.predicates))
        if self.order:
            parts.append("ORDER BY " + ", ".join(str(o) for o in self.order))
        if self._limited():
            parts.append(f"LIMIT {self.fetch if self.fetch is not None else -1}")
        if self.skip:
            parts.append(f"OFFSET {self.skip}")
        return " ".join(parts)

    def collect(self) -> list[RecordBatch]:
        """Run the query and return its result."""
        return self.ctx.execute(self.to_sql())