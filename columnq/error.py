"""Errors raised while loading tables and running queries."""

from __future__ import annotations


class ColumnQError(Exception):
    """Base error for table loading and catalog operations."""

    template = "{}"

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(self.template.format(detail))

    @classmethod
    def json_parse(cls, error: object) -> "LoadJsonError":
        """Error for JSON data that could not be parsed or serialised."""
        return LoadJsonError(f"Failed to parse JSON data: {error}")

    @classmethod
    def invalid_kv_key_type(cls) -> "GenericError":
        """Error for a key-value store whose key column is not a string."""
        return GenericError("keyvalue store key datatype should be a string")


class InvalidUriError(ColumnQError):
    """A table URI that cannot be used."""

    template = "Invalid table URI: {}"


class MissingOptionError(ColumnQError):
    """A table source lacks a required option."""

    template = "Missing required table option config"


class FileStoreError(ColumnQError):
    """Failure reading from the local file system."""

    template = "Error loading data from file store: {}"


class HttpStoreError(ColumnQError):
    """Failure reading from an HTTP server."""

    template = "Error loading data from HTTP store: {}"


class LoadJsonError(ColumnQError):
    """Failure loading or writing JSON data."""

    template = "Error loading JSON: {}"


class GenericError(ColumnQError):
    """Any other failure."""

    template = "Generic error: {}"


class DatabaseError(ColumnQError):
    """Failure talking to a database."""

    template = "Database error: {}"


class QueryError(Exception):
    """A query that could not be planned or executed."""

    def __init__(self, error: str, message: str) -> None:
        self.error = error
        self.message = message
        super().__init__(f"{error}: {message}")

    def __str__(self) -> str:
        return f"{self.error}: {self.message}"

    @classmethod
    def plan_sql(cls, error: object) -> "QueryError":
        return cls("plan_sql", f"Failed to plan execution from SQL query: {error}")

    @classmethod
    def invalid_sort(cls, error: object) -> "QueryError":
        return cls("invalid_sort", f"Failed to apply sort operator: {error}")

    @classmethod
    def invalid_filter(cls, error: object) -> "QueryError":
        return cls("invalid_filter", f"Failed to apply filter operator: {error}")

    @classmethod
    def invalid_limit(cls, error: object) -> "QueryError":
        return cls("invalid_limit", f"Failed to apply limit operator: {error}")

    @classmethod
    def invalid_projection(cls, error: object) -> "QueryError":
        return cls("invalid_projection", f"Failed to apply projection operator: {error}")

    @classmethod
    def query_exec(cls, error: object) -> "QueryError":
        return cls("query_execution", f"Failed to execute query: {error}")

    @classmethod
    def invalid_table(cls, error: object, table_name: str) -> "QueryError":
        return cls("invalid_table", f"Failed to load table {table_name}: {error}")

    @classmethod
    def invalid_kv_name(cls, kv_name: str) -> "QueryError":
        return cls("invalid_kv_name", f"keyvalue store name `{kv_name}` doesn't exist")