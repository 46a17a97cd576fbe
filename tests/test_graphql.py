import pytest

from columnq.error import QueryError
from columnq.expr import Column, Literal, Operator, binary_expr, column_sort_expr_asc
from columnq.graphql import (
    EnumValue,
    Field as GqlField,
    FragmentSpread,
    Variable,
    exec_query,
    parse_query,
    query_to_df,
)
from columnq.record import DataType, Field, RecordBatch, Schema
from columnq.session import SessionContext

ADDRESSES = (
    "Bothell, WA",
    "Lynnwood, WA",
    "Kirkland, WA",
    "Kent, WA",
    "Mount Vernon, WA",
    "Seattle, WA",
    "Seattle, WA",
    "Shoreline, WA",
    "Bellevue, WA",
    "Renton, WA",
    "Woodinville, WA",
    "Kenmore, WA",
    "Fremont, WA",
    "Redmond, WA",
    "Mill Creek, WA",
)
LANDLORDS = (
    "Roger", "Daniel", "Mike", "Mike", "Roger", "Carl", "Daniel", "Roger", "Mike",
    "Carl", "Carl", "Sam", "Daniel", "Mike", "Sam",
)
BEDS = (3, 2, 4, 3, 2, 3, 2, 1, 3, 4, 3, 4, 5, 2, 3)
BATHS = (2, 1, 2, 2, 1, 1, 1, 1, 1, 2, 3, 3, 3, 2, 3)
OCCUPIED = (
    False, False, True, False, False, True, True, True, False, True, False, False,
    False, False, True,
)
RENTS = (
    "$2,000", "$1,700", "$3,000", "$3,800", "$1,500", "$3,000", "$1,500", "$1,200",
    "$2,400", "$2,800", "$3,000", "$4,000", "$4,500", "$2,200", "$3,500",
)
LEASES = (
    "10/23/2020", "6/10/2019", "6/24/2021", "10/31/2020", "11/5/2019", "12/28/2021",
    "4/29/2021", "12/9/2021", "2/15/2020", "10/22/2021", "5/30/2019", "9/22/2019",
    "7/13/2019", "5/31/2020", "8/4/2021",
)


def _properties() -> RecordBatch:
    schema = Schema(
        (
            Field("address", DataType.UTF8, False),
            Field("landlord", DataType.UTF8, False),
            Field("bed", DataType.INT64, False),
            Field("bath", DataType.INT64, False),
            Field("occupied", DataType.BOOLEAN, False),
            Field("monthly_rent", DataType.UTF8, False),
            Field("lease_expiration_date", DataType.UTF8, False),
        )
    )
    return RecordBatch(schema, (ADDRESSES, LANDLORDS, BEDS, BATHS, OCCUPIED, RENTS, LEASES))


@pytest.fixture
def ctx():
    context = SessionContext()
    context.register_table("properties", _properties())
    return context


def test_simple_query_planning(ctx):
    df = query_to_df(
        ctx,
        """{
            properties(
                filter: {
                    bed: { gt: 3 }
                    bath: { gteq: 2 }
                }
            ) {
                address
                bed
                bath
            }
        }""",
    )
    expected = (
        ctx.table("properties")
        .filter(binary_expr(Column("bath"), Operator.GT_EQ, Literal(2)))
        .filter(binary_expr(Column("bed"), Operator.GT, Literal(3)))
        .select_columns(["address", "bed", "bath"])
    )
    assert df.to_sql() == expected.to_sql()


def test_consistent_and_deterministic_logical_plan(ctx):
    df = query_to_df(
        ctx,
        """{
            properties(
                filter: {
                    bed: { gt: 3 }
                }
                limit: 10
                sort: [
                    { field: "bed" }
                ]
            ) {
                address
                bed
            }
        }""",
    )
    expected = (
        ctx.table("properties")
        .filter(binary_expr(Column("bed"), Operator.GT, Literal(3)))
        .select_columns(["address", "bed"])
        .sort([column_sort_expr_asc("bed")])
        .limit(0, 10)
    )
    assert df.to_sql() == expected.to_sql()


def test_boolean_literal_as_predicate_operand(ctx):
    batches = exec_query(
        ctx,
        """{
            properties(
                filter: {
                    occupied: false
                    bed: { gteq: 4 }
                }
            ) {
                address
                bed
                bath
            }
        }""",
    )
    batch = batches[0]
    assert batch.column(0) == ("Kenmore, WA", "Fremont, WA")
    assert batch.column(1) == (4, 5)
    assert batch.column(2) == (3, 3)


def test_sort_desc_then_asc(ctx):
    batches = exec_query(
        ctx,
        """{ properties(
                sort: [{field: "bed", order: "desc"}, {field: "address", order: "asc"}]
                limit: 3
            ) { address bed } }""",
    )
    assert batches[0].column("address") == ("Fremont, WA", "Kenmore, WA", "Kirkland, WA")
    assert batches[0].column("bed") == (5, 4, 4)


def test_limit_with_page(ctx):
    query = "{ properties(limit: 3, page: 2) { address } }"
    expected = ctx.table("properties").select_columns(["address"]).limit(3, 3)
    assert query_to_df(ctx, query).to_sql() == expected.to_sql()
    batches = exec_query(ctx, query)
    assert batches[0].column(0) == ADDRESSES[3:6]


def test_literal_filter_is_equality(ctx):
    batches = exec_query(ctx, '{ properties(filter: {landlord: "Sam"}) { address } }')
    assert batches[0].column(0) == ("Kenmore, WA", "Mill Creek, WA")


def _error(ctx, query):
    with pytest.raises(QueryError) as info:
        query_to_df(ctx, query)
    return info.value


def test_unknown_table(ctx):
    err = _error(ctx, "{ nothing { a } }")
    assert err.error == "invalid_table"
    assert err.message.startswith("Failed to load table nothing")


def test_invalid_argument(ctx):
    err = _error(ctx, "{ properties(offset: 1) { address } }")
    assert err.error == "invalid graphql query"
    assert err.message == "invalid query argument: offset"


def test_invalid_filter_operator(ctx):
    err = _error(ctx, "{ properties(filter: {bed: {ne: 1}}) { address } }")
    assert err.message == "invalid filter predicate operator, got: ne"


def test_filter_not_object(ctx):
    err = _error(ctx, "{ properties(filter: 3) { address } }")
    assert err.message == "filter argument takes object as value, got: 3"


def test_filter_unknown_column(ctx):
    err = _error(ctx, "{ properties(filter: {nope: 1}) { address } }")
    assert err.error == "invalid_filter"


def test_sort_errors(ctx):
    assert _error(ctx, '{ properties(sort: {field: "bed"}) { bed } }').message.startswith(
        "sort argument takes list as value"
    )
    assert (
        _error(ctx, '{ properties(sort: [{field: "bed", order: "up"}]) { bed } }').message
        == "sort order needs to be either `desc` or `asc`, got: up"
    )
    assert (
        _error(ctx, '{ properties(sort: [{order: "asc"}]) { bed } }').message
        == "sort option requires `field` argument"
    )


def test_limit_errors(ctx):
    assert (
        _error(ctx, '{ properties(limit: "5") { bed } }').message
        == 'limit argument takes int as value, got: "5"'
    )
    assert _error(ctx, "{ properties(limit: -1) { bed } }").message == "limit value too large: -1"


def test_unknown_selected_column(ctx):
    assert _error(ctx, "{ properties { nope } }").error == "invalid_selection_set"


def test_definition_count(ctx):
    assert _error(ctx, "").message == "empty query"
    assert _error(ctx, "{ a { b } } { c { d } }").message == "only 1 definition allowed, got: 2"


def test_unsupported_operation_and_fragments(ctx):
    assert "Unsupported operation" in _error(ctx, "mutation { properties { address } }").message
    assert _error(ctx, "{ ...Frag }").error == "invalid graphql query"
    assert _error(ctx, "fragment F on T { a }").error == "invalid graphql query"


def test_parse_error(ctx):
    err = _error(ctx, "{ properties(")
    assert err.error == "invalid graphql query"
    assert err.message.startswith("query parse error")


def test_parse_query_structure():
    doc = parse_query('{ alias: t(x: 1, y: "a\\nb", z: [true, null], w: {b: 2.5, a: FOO}) { c ...F } }')
    (definition,) = doc.definitions
    assert definition.kind is None
    field = definition.selection_set.items[0]
    assert isinstance(field, GqlField)
    assert (field.alias, field.name) == ("alias", "t")
    args = dict(field.arguments)
    assert args["x"] == 1
    assert args["y"] == "a\nb"
    assert args["z"] == [True, None]
    assert args["w"] == {"a": EnumValue("FOO"), "b": 2.5}
    assert list(args["w"]) == ["a", "b"]
    assert field.selection_set.items[1] == FragmentSpread("F")


def test_parse_query_operation_with_variables():
    doc = parse_query('query Q($n: [Int!]! = 3) { t(v: $n) { a } }')
    (definition,) = doc.definitions
    assert definition.kind == "query"
    assert definition.name == "Q"
    var = definition.variable_definitions[0]
    assert (var.name, var.var_type, var.default_value) == ("n", "[Int!]!", 3)
    assert dict(definition.selection_set.items[0].arguments)["v"] == Variable("n")