"""Running SQL queries against a session."""

from __future__ import annotations

from .error import ColumnQError, QueryError
from .record import RecordBatch
from .session import SessionContext


def exec_query(ctx: SessionContext, sql: str) -> list[RecordBatch]:
    """Execute ``sql`` and return the result batches."""
    try:
        return ctx.execute(sql)
    except ColumnQError as exc:
        raise QueryError.plan_sql(exc) from exc