# columnq

`columnq` keeps tables of typed, column-oriented records in memory and
answers SQL and GraphQL queries over them. Results come back as record
batches that can be encoded as JSON or CSV.

It needs nothing outside the Python standard library. SQL runs on the
standard library's SQLite engine, so the SQL dialect is SQLite's.

## Records

`columnq.record` describes data:

- `DataType` is the logical type of a column: `NULL`, `BOOLEAN`, `INT64`,
  `FLOAT64`, `UTF8`, `DATE32`, `DATE64`, and timestamp and time types in
  second, millisecond, microsecond and nanosecond units. Dates, times and
  timestamps are stored as integers: days since the epoch for `DATE32`,
  milliseconds since the epoch for `DATE64`, and counts of the type's unit
  for timestamps and times of day.
- `Field(name, data_type, nullable=True)` and `Schema(fields)`;
  `schema.index_of(name)` finds a field's position and `schema.field(i)`
  returns a field.
- `RecordBatch(schema, columns)` holds equal-length columns and checks every
  value against its field's type and nullability, raising
  `columnq.error.GenericError` on a mismatch. Build one from rows with
  `RecordBatch.from_rows(schema, rows)` (rows as mappings or as sequences),
  read a column by position or name with `batch.column(...)`, and iterate
  rows as dicts with `batch.rows()`.

```python
from columnq.record import DataType, Field, RecordBatch, Schema

schema = Schema((
    Field("address", DataType.UTF8, False),
    Field("landlord", DataType.UTF8, False),
    Field("bed", DataType.INT64, False),
    Field("occupied", DataType.BOOLEAN, False),
))
batch = RecordBatch.from_rows(schema, [
    ("Kent, WA", "Mike", 3, False),
    ("Kenmore, WA", "Sam", 4, False),
])
```

## Querying

`columnq.context.ColumnQ` is the entry point:

```python
from columnq.context import ColumnQ

cq = ColumnQ()
cq.register_table("properties", batch)   # replaces a table of the same name

result = cq.query_sql(
    "SELECT landlord, COUNT(address) FROM properties GROUP BY landlord ORDER BY landlord"
)

result = cq.query_graphql("""
{
    properties(
        filter: {
            occupied: false
            bed: { gteq: 4 }
        }
        sort: [{ field: "bed", order: "desc" }]
        limit: 10
    ) {
        address
        bed
    }
}
""")

cq.schema_map()   # {"properties": Schema(...)}
```

Each query returns a list of record batches: one batch holding every
result row, or an empty list when there are no rows. Column types of a
result are inferred from its values. SQL queries can also read
`information_schema.tables` and `information_schema.columns`.

A GraphQL query selects one table by name and the columns to return. Its
arguments are:

| argument | value |
|----------|-------|
| `filter` | object mapping columns to a literal (equality) or to an object of operators `eq`, `lt`, `lte`/`lteq`, `gt`, `gte`/`gteq` |
| `sort`   | list of `{ field: "...", order: "asc" \| "desc" }` objects; order defaults to `asc` |
| `limit`  | number of rows to return |
| `page`   | 1-based page number; with `limit`, skips `(page - 1) * limit` rows |

Failures raise `columnq.error.QueryError`. Its `error` attribute names the
kind of failure (such as `plan_sql`, `invalid_table`, `invalid_filter`,
`query_execution` or `invalid graphql query`) and `message` explains it.

### Lower-level pieces

- `columnq.session.SessionContext` is the table catalog behind `ColumnQ`:
  `register_table`, `deregister_table`, `table_schema`, `table(name)` and
  `execute(sql)`. Registering a name that already exists raises
  `GenericError`.
- `columnq.session.DataFrame`, returned by `SessionContext.table`, builds a
  query step by step with `filter`, `select_columns`, `sort` and
  `limit(skip, fetch)`; `to_sql()` shows the statement and `collect()` runs it.
- `columnq.expr` provides the expressions these take: `Column`, `Literal`,
  `Operator`, `binary_expr`, `column_sort_expr_asc` and
  `column_sort_expr_desc`.
- `columnq.sql.exec_query(ctx, sql)`, `columnq.graphql.exec_query(ctx, query)`
  and `columnq.graphql.query_to_df(ctx, query)` run queries against a
  `SessionContext`; `columnq.graphql.parse_query(text)` parses a GraphQL
  document.

## Key/value stores

Two string columns of a table can be turned into a lookup map:

```python
cq.load_kv("owners", batch, key="address", value="landlord")
cq.kv_get("owners", "Kent, WA")   # -> "Mike"
cq.kv_get("owners", "Nowhere")    # -> None
```

Rows with a null key or value are skipped. Asking for a store that was
never loaded raises `QueryError` with the error `invalid_kv_name`; a key
column that is not `UTF8` raises `ColumnQError`, and a value column that is
not `UTF8` raises `GenericError`.

## Output encodings

```python
from columnq.encoding import record_batches_to_csv_bytes, record_batches_to_json_bytes

json_bytes = record_batches_to_json_bytes(result)
csv_bytes = record_batches_to_csv_bytes(result)
```

JSON output is a compact array of row objects with sorted keys; null values
are left out, and dates, times and timestamps are written as strings such as
`"2021-04-12"`, `"00:02:00"` and `"2021-05-12 04:04:28.001"`. CSV output has
one header row taken from the first batch.

`ContentType.from_header` maps an `Accept` value (such as `application/json`
or `*/*`) to a `ContentType` and raises `ValueError` for anything else;
`ContentType.to_str` gives the canonical MIME type.

## Locating data

`columnq.io` classifies table URIs with `BlobStoreType.from_scheme` and
`blob_store_type_for_uri`: no scheme, `file` and `filesystem` mean the local
file system; `http` and `https` a web server; `s3`, `gs` and the Azure
schemes (`az`, `adl`, `adfs`, `adfss`, `azure`) cloud storage; and `memory`
bytes held in memory. Other schemes raise `InvalidUriError`.

`build_file_list(path, extension)` lists matching files under a path in
sorted order. `partitions_from_fs`, `partitions_from_paths`,
`partitions_from_http` and `partitions_from_memory` open each partition of a
source and pass a binary reader to a function you supply, returning the
list of its results. Read failures raise `FileStoreError` or
`HttpStoreError`.

## What it does not do

- Tables are registered from record batches; the package has no readers
  that turn CSV, JSON, Parquet or other files into tables. The partition
  functions hand over raw bytes and leave parsing to you.
- Cloud storage URIs are recognised but cannot be read.
- Results can be encoded only as JSON or CSV. The Arrow and Parquet content
  types are named, but there is no encoder for them.
- There is no command-line tool, interactive console or server.