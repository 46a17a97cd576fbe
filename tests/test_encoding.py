import csv
import io
import json

import pytest

from columnq.encoding import (
    DEFAULT_CONTENT_TYPE,
    ContentType,
    record_batches_to_csv_bytes,
    record_batches_to_json_bytes,
)
from columnq.record import DataType, Field, RecordBatch, Schema


def _expected(rows):
    return json.dumps(rows, separators=(",", ":"), sort_keys=True)


def test_serialize_date_columns():
    schema = Schema(
        [Field("d32", DataType.DATE32, False), Field("d64", DataType.DATE64, False)]
    )
    batch = RecordBatch(schema, [[1, 18729], [1, 1618200268000]])
    data = record_batches_to_json_bytes([batch])
    assert data.decode() == _expected(
        [
            {"d32": "1970-01-02", "d64": "1970-01-01"},
            {"d32": "2021-04-12", "d64": "2021-04-12"},
        ]
    )


def test_serialize_timestamp_columns():
    schema = Schema(
        [
            Field("sec", DataType.TIMESTAMP_SECOND, False),
            Field("msec", DataType.TIMESTAMP_MILLISECOND, False),
            Field("usec", DataType.TIMESTAMP_MICROSECOND, False),
            Field("nsec", DataType.TIMESTAMP_NANOSECOND, False),
        ]
    )
    batch = RecordBatch(
        schema,
        [
            [1618200268, 1620792268],
            [1618200268000, 1620792268001],
            [1618200268000000, 1620792268000002],
            [1618200268000000000, 1620792268000000003],
        ],
    )
    data = record_batches_to_json_bytes([batch])
    assert data.decode() == _expected(
        [
            {
                "sec": "2021-04-12 04:04:28",
                "msec": "2021-04-12 04:04:28",
                "usec": "2021-04-12 04:04:28",
                "nsec": "2021-04-12 04:04:28",
            },
            {
                "sec": "2021-05-12 04:04:28",
                "msec": "2021-05-12 04:04:28.001",
                "usec": "2021-05-12 04:04:28.000002",
                "nsec": "2021-05-12 04:04:28.000000003",
            },
        ]
    )


def test_serialize_time_columns():
    schema = Schema(
        [
            Field("t32sec", DataType.TIME32_SECOND, False),
            Field("t32msec", DataType.TIME32_MILLISECOND, False),
            Field("t64usec", DataType.TIME64_MICROSECOND, False),
            Field("t64nsec", DataType.TIME64_NANOSECOND, False),
        ]
    )
    batch = RecordBatch(schema, [[1, 120], [1, 120], [1, 120], [1, 120]])
    data = record_batches_to_json_bytes([batch])
    assert data.decode() == _expected(
        [
            {
                "t32sec": "00:00:01",
                "t32msec": "00:00:00.001",
                "t64usec": "00:00:00.000001",
                "t64nsec": "00:00:00.000000001",
            },
            {
                "t32sec": "00:02:00",
                "t32msec": "00:00:00.120",
                "t64usec": "00:00:00.000120",
                "t64nsec": "00:00:00.000000120",
            },
        ]
    )


@pytest.fixture
def people():
    schema = Schema(
        [
            Field("name", DataType.UTF8),
            Field("age", DataType.INT64),
            Field("active", DataType.BOOLEAN),
        ]
    )
    return RecordBatch(schema, [["Alice", "Bob, Jr."], [30, None], [True, False]])


def test_json_omits_nulls_and_spans_batches(people):
    data = json.loads(record_batches_to_json_bytes([people, people]))
    assert len(data) == 4
    assert data[1] == {"name": "Bob, Jr.", "active": False}
    assert data[0] == {"name": "Alice", "age": 30, "active": True}


def test_json_empty():
    assert record_batches_to_json_bytes([]) == b"[]"


def test_csv_round_trip(people):
    data = record_batches_to_csv_bytes([people, people])
    rows = list(csv.reader(io.StringIO(data.decode())))
    assert rows[0] == ["name", "age", "active"]
    assert len(rows) == 5
    assert rows[1] == ["Alice", "30", "true"]
    assert rows[2] == ["Bob, Jr.", "", "false"]


def test_csv_quotes_delimiters(people):
    text = record_batches_to_csv_bytes([people]).decode()
    assert '"Bob, Jr."' in text
    assert text.endswith("\n")


def test_csv_empty():
    assert record_batches_to_csv_bytes([]) == b""


@pytest.mark.parametrize(
    "content_type, mime",
    [
        (ContentType.JSON, "application/json"),
        (ContentType.CSV, "application/csv"),
        (ContentType.ARROW_FILE, "application/vnd.apache.arrow.file"),
        (ContentType.ARROW_STREAM, "application/vnd.apache.arrow.stream"),
        (ContentType.PARQUET, "application/parquet"),
    ],
)
def test_content_type_round_trip(content_type, mime):
    assert content_type.to_str() == mime
    assert ContentType.from_header(mime.encode()) is content_type
    assert ContentType.from_header(mime) is content_type


@pytest.mark.parametrize(
    "header, expected",
    [
        (b"*/*", ContentType.JSON),
        (b"application/arrow.file", ContentType.ARROW_FILE),
        (b"application/arrow.stream", ContentType.ARROW_STREAM),
        (b"application/vnd.apache.parquet", ContentType.PARQUET),
    ],
)
def test_content_type_aliases(header, expected):
    assert ContentType.from_header(header) is expected


def test_content_type_unknown():
    with pytest.raises(ValueError):
        ContentType.from_header(b"text/html")


def test_default_content_type():
    assert DEFAULT_CONTENT_TYPE.to_str() == "application/json"
    assert ContentType.from_header(b"*/*") is DEFAULT_CONTENT_TYPE