"""A catalog of tables and key-value stores answering SQL and GraphQL queries."""

from __future__ import annotations

from collections.abc import Iterable
from types import MappingProxyType
from typing import Mapping

from . import graphql, sql
from .error import ColumnQError, GenericError, QueryError
from .record import DataType, RecordBatch, Schema
from .session import SessionContext


def _as_batches(batches: RecordBatch | Iterable[RecordBatch]) -> tuple[RecordBatch, ...]:
    if isinstance(batches, RecordBatch):
        return (batches,)
    return tuple(batches)


class ColumnQ:
    """Tables and key-value stores loaded into one query session."""

    def __init__(self, ctx: SessionContext | None = None) -> None:
        self.ctx = ctx if ctx is not None else SessionContext()
        self._schema_map: dict[str, Schema] = {}
        self._kv_catalog: dict[str, Mapping[str, str]] = {}

    def register_table(self, name: str, batches: RecordBatch | Iterable[RecordBatch]) -> None:
        """Register a table, replacing any table of the same name."""
        batches = _as_batches(batches)
        self.ctx.deregister_table(name)
        self.ctx.register_table(name, batches)
        self._schema_map[name] = self.ctx.table_schema(name)

    def load_kv(
        self,
        name: str,
        batches: RecordBatch | Iterable[RecordBatch],
        key: str,
        value: str,
    ) -> None:
        """Build a key-value store from two string columns; rows with nulls are skipped."""
        batches = _as_batches(batches)
        if not batches:
            raise GenericError("a table needs at least one record batch to define its schema")
        schema = batches[0].schema
        key_index = schema.index_of(key)
        if schema.field(key_index).data_type is not DataType.UTF8:
            raise ColumnQError.invalid_kv_key_type()
        value_index = schema.index_of(value)
        value_type = schema.field(value_index).data_type
        if value_type is not DataType.UTF8:
            raise GenericError(f"unsupported type: {value_type.value}")

        store: dict[str, str] = {}
        for batch in batches:
            if batch.schema != schema:
                raise GenericError("all record batches of a table must share one schema")
            for k, v in zip(batch.column(key_index), batch.column(value_index)):
                if k is not None and v is not None:
                    store[k] = v
        self._kv_catalog[name] = MappingProxyType(store)

    def schema_map(self) -> dict[str, Schema]:
        """Schemas of the registered tables by name."""
        return dict(self._schema_map)

    def query_sql(self, query: str) -> list[RecordBatch]:
        return sql.exec_query(self.ctx, query)

    def query_graphql(self, query: str) -> list[RecordBatch]:
        return graphql.exec_query(self.ctx, query)

    def kv_get(self, kv_name: str, key: str) -> str | None:
        """Value for ``key`` in a key-value store, or None if the key is absent."""
        try:
            store = self._kv_catalog[kv_name]
        except KeyError:
            raise QueryError.invalid_kv_name(kv_name) from None
        return store.get(key)