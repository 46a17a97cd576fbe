import pytest

from columnq.error import (
    ColumnQError,
    DatabaseError,
    FileStoreError,
    GenericError,
    HttpStoreError,
    InvalidUriError,
    LoadJsonError,
    MissingOptionError,
    QueryError,
)


@pytest.mark.parametrize(
    "cls, detail, expected",
    [
        (InvalidUriError, "bad", "Invalid table URI: bad"),
        (FileStoreError, "gone", "Error loading data from file store: gone"),
        (HttpStoreError, "down", "Error loading data from HTTP store: down"),
        (LoadJsonError, "broken", "Error loading JSON: broken"),
        (GenericError, "oops", "Generic error: oops"),
        (DatabaseError, "locked", "Database error: locked"),
    ],
)
def test_error_messages(cls, detail, expected):
    err = cls(detail)
    assert str(err) == expected
    assert err.detail == detail
    assert isinstance(err, ColumnQError)


def test_missing_option_has_fixed_message():
    assert str(MissingOptionError()) == "Missing required table option config"


def test_json_parse():
    err = ColumnQError.json_parse("unexpected end")
    assert isinstance(err, LoadJsonError)
    assert str(err) == "Error loading JSON: Failed to parse JSON data: unexpected end"


def test_invalid_kv_key_type():
    err = ColumnQError.invalid_kv_key_type()
    assert isinstance(err, GenericError)
    assert str(err) == "Generic error: keyvalue store key datatype should be a string"


def test_errors_can_be_raised_and_caught_by_base():
    err = InvalidUriError("x")
    with pytest.raises(ColumnQError) as excinfo:
        raise err
    assert excinfo.value is err
    assert str(excinfo.value) == "Invalid table URI: x"
    assert excinfo.value.detail == "x"


@pytest.mark.parametrize(
    "factory, code, prefix",
    [
        (QueryError.plan_sql, "plan_sql", "Failed to plan execution from SQL query: "),
        (QueryError.invalid_sort, "invalid_sort", "Failed to apply sort operator: "),
        (QueryError.invalid_filter, "invalid_filter", "Failed to apply filter operator: "),
        (QueryError.invalid_limit, "invalid_limit", "Failed to apply limit operator: "),
        (
            QueryError.invalid_projection,
            "invalid_projection",
            "Failed to apply projection operator: ",
        ),
        (QueryError.query_exec, "query_execution", "Failed to execute query: "),
    ],
)
def test_query_error_factories(factory, code, prefix):
    err = factory(ValueError("boom"))
    assert err.error == code
    assert err.message == prefix + "boom"
    assert str(err) == f"{code}: {prefix}boom"


def test_invalid_table():
    err = QueryError.invalid_table("no such table", "properties")
    assert err.error == "invalid_table"
    assert err.message == "Failed to load table properties: no such table"


def test_invalid_kv_name():
    err = QueryError.invalid_kv_name("users")
    assert err.error == "invalid_kv_name"
    assert err.message == "keyvalue store name `users` doesn't exist"
    with pytest.raises(QueryError, match="invalid_kv_name"):
        raise err