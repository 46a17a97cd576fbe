"""Serialisation of record batches and content type negotiation."""

from __future__ import annotations

import csv
import io
import json
import math
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

from .error import ColumnQError
from .record import DataType, RecordBatch


class ContentType(Enum):
    """Output formats a query result can be encoded in."""

    JSON = "application/json"
    CSV = "application/csv"
    ARROW_FILE = "application/vnd.apache.arrow.file"
    ARROW_STREAM = "application/vnd.apache.arrow.stream"
    PARQUET = "application/parquet"

    def to_str(self) -> str:
        return self.value

    @classmethod
    def from_header(cls, value: bytes | str) -> "ContentType":
        """Content type named by an Accept header value."""
        text = value.decode("latin-1") if isinstance(value, (bytes, bytearray)) else value
        try:
            return _HEADER_TYPES[text]
        except KeyError:
            raise ValueError(f"unsupported content type: {text!r}") from None


DEFAULT_CONTENT_TYPE = ContentType.JSON

_HEADER_TYPES = {
    "*/*": ContentType.JSON,
    "application/json": ContentType.JSON,
    "application/csv": ContentType.CSV,
    "application/arrow.file": ContentType.ARROW_FILE,
    "application/vnd.apache.arrow.file": ContentType.ARROW_FILE,
    "application/arrow.stream": ContentType.ARROW_STREAM,
    "application/vnd.apache.arrow.stream": ContentType.ARROW_STREAM,
    "application/parquet": ContentType.PARQUET,
    "application/vnd.apache.parquet": ContentType.PARQUET,
}

_NANOS_PER_SECOND = 1_000_000_000
_EPOCH = datetime(1970, 1, 1)
_EPOCH_DATE = date(1970, 1, 1)
_MILLIS_PER_DAY = 86_400_000

_UNIT_NANOS = {
    DataType.TIMESTAMP_SECOND: _NANOS_PER_SECOND,
    DataType.TIMESTAMP_MILLISECOND: 1_000_000,
    DataType.TIMESTAMP_MICROSECOND: 1_000,
    DataType.TIMESTAMP_NANOSECOND: 1,
    DataType.TIME32_SECOND: _NANOS_PER_SECOND,
    DataType.TIME32_MILLISECOND: 1_000_000,
    DataType.TIME64_MICROSECOND: 1_000,
    DataType.TIME64_NANOSECOND: 1,
}

_TIMESTAMP_TYPES = {
    DataType.TIMESTAMP_SECOND,
    DataType.TIMESTAMP_MILLISECOND,
    DataType.TIMESTAMP_MICROSECOND,
    DataType.TIMESTAMP_NANOSECOND,
}

_TIME_TYPES = {
    DataType.TIME32_SECOND,
    DataType.TIME32_MILLISECOND,
    DataType.TIME64_MICROSECOND,
    DataType.TIME64_NANOSECOND,
}


def _fraction(nanos: int) -> str:
    if nanos == 0:
        return ""
    if nanos % 1_000_000 == 0:
        return f".{nanos // 1_000_000:03d}"
    if nanos % 1_000 == 0:
        return f".{nanos // 1_000:06d}"
    return f".{nanos:09d}"


def _split(value: int, data_type: DataType) -> tuple[int, int]:
    return divmod(value * _UNIT_NANOS[data_type], _NANOS_PER_SECOND)


def _date32(value: int) -> str:
    return (_EPOCH_DATE + timedelta(days=value)).isoformat()


def _date64_datetime(value: int) -> datetime:
    secs, millis = divmod(value, 1000)
    return _EPOCH + timedelta(seconds=secs, milliseconds=millis)


def _clock(secs: int) -> str:
    hours, rest = divmod(secs, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def _json_value(data_type: DataType, value: Any) -> Any:
    if data_type is DataType.DATE32:
        return _date32(value)
    if data_type is DataType.DATE64:
        return _date64_datetime(value).date().isoformat()
    if data_type in _TIMESTAMP_TYPES:
        secs, nanos = _split(value, data_type)
        stamp = _EPOCH + timedelta(seconds=secs)
        return stamp.isoformat(sep=" ", timespec="seconds") + _fraction(nanos)
    if data_type in _TIME_TYPES:
        secs, nanos = _split(value, data_type)
        return _clock(secs) + _fraction(nanos)
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def _json_rows(batches: Iterable[RecordBatch]) -> list[dict[str, Any]]:
    rows = []
    for batch in batches:
        fields = batch.schema.fields
        for values in zip(*batch.columns):
            rows.append(
                {
                    f.name: _json_value(f.data_type, v)
                    for f, v in zip(fields, values)
                    if v is not None
                }
            )
    return rows


def record_batches_to_json_bytes(batches: Iterable[RecordBatch]) -> bytes:
    """Encode batches as a JSON array of row objects; null values are omitted."""
    try:
        rows = _json_rows(batches)
        return json.dumps(rows, separators=(",", ":"), sort_keys=True).encode("utf-8")
    except (TypeError, ValueError, OverflowError) as exc:
        raise ColumnQError.json_parse(exc) from exc


def _csv_value(data_type: DataType, value: Any) -> str:
    if value is None:
        return ""
    if data_type is DataType.BOOLEAN:
        return "true" if value else "false"
    if data_type is DataType.DATE32:
        return _date32(value)
    if data_type is DataType.DATE64:
        stamp = _date64_datetime(value)
        return f"{stamp.isoformat(timespec='seconds')}.{stamp.microsecond * 1000:09d}"
    if data_type in _TIMESTAMP_TYPES:
        secs, nanos = _split(value, data_type)
        stamp = _EPOCH + timedelta(seconds=secs)
        return f"{stamp.isoformat(timespec='seconds')}.{nanos:09d}"
    if data_type in _TIME_TYPES:
        secs, _ = _split(value, data_type)
        return _clock(secs)
    if isinstance(value, float):
        return repr(value)
    return str(value)


def record_batches_to_csv_bytes(batches: Iterable[RecordBatch]) -> bytes:
    """Encode batches as CSV with a single header row taken from the first batch."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    header_written = False
    for batch in batches:
        fields = batch.schema.fields
        if not header_written:
            writer.writerow([f.name for f in fields])
            header_written = True
        for values in zip(*batch.columns):
            writer.writerow([_csv_value(f.data_type, v) for f, v in zip(fields, values)])
    return buffer.getvalue().encode("utf-8")