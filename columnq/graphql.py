"""Turning GraphQL queries into data frame operations."""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Union

from .error import ColumnQError, QueryError
from .expr import (
    BinaryExpr,
    Column,
    Literal,
    Operator,
    SortExpr,
    binary_expr,
    column_sort_expr_asc,
    column_sort_expr_desc,
)
from .record import RecordBatch
from .session import DataFrame, SessionContext

_INVALID = "invalid graphql query"
_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1


@dataclass(frozen=True)
class Variable:
    """A reference to a query variable, such as ``$limit``."""

    name: str

    def __str__(self) -> str:
        return f"${self.name}"


@dataclass(frozen=True)
class EnumValue:
    """An unquoted enum value."""

    name: str

    def __str__(self) -> str:
        return self.name


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, list):
        return "[" + ", ".join(_format_value(v) for v in value) + "]"
    if isinstance(value, dict):
        return "{" + ", ".join(f"{k}: {_format_value(v)}" for k, v in value.items()) + "}"
    return str(value)


def _format_arguments(arguments: Sequence[tuple[str, Any]]) -> str:
    if not arguments:
        return ""
    return "(" + ", ".join(f"{k}: {_format_value(v)}" for k, v in arguments) + ")"


@dataclass(frozen=True)
class Directive:
    """A directive such as ``@include(if: true)``."""

    name: str
    arguments: tuple[tuple[str, Any], ...] = ()

    def __str__(self) -> str:
        return f"@{self.name}{_format_arguments(self.arguments)}"


def _format_directives(directives: Sequence[Directive]) -> str:
    return "".join(f" {d}" for d in directives)


@dataclass(frozen=True)
class SelectionSet:
    """The selections between a pair of braces."""

    items: tuple["Selection", ...] = ()

    def __str__(self) -> str:
        return "{ " + " ".join(str(item) for item in self.items) + " }"


@dataclass(frozen=True)
class Field:
    """A selected field with its arguments and sub-selections."""

    name: str
    alias: str | None = None
    arguments: tuple[tuple[str, Any], ...] = ()
    directives: tuple[Directive, ...] = ()
    selection_set: SelectionSet = SelectionSet()

    def __str__(self) -> str:
        text = (f"{self.alias}: " if self.alias else "") + self.name
        text += _format_arguments(self.arguments) + _format_directives(self.directives)
        if self.selection_set.items:
            text += f" {self.selection_set}"
        return text


@dataclass(frozen=True)
class FragmentSpread:
    """A ``...Name`` reference to a named fragment."""

    name: str
    directives: tuple[Directive, ...] = ()

    def __str__(self) -> str:
        return f"...{self.name}{_format_directives(self.directives)}"


@dataclass(frozen=True)
class InlineFragment:
    """A ``... on Type { ... }`` fragment."""

    type_condition: str | None
    directives: tuple[Directive, ...]
    selection_set: SelectionSet

    def __str__(self) -> str:
        condition = f" on {self.type_condition}" if self.type_condition else ""
        return f"...{condition}{_format_directives(self.directives)} {self.selection_set}"


Selection = Union[Field, FragmentSpread, InlineFragment]


@dataclass(frozen=True)
class VariableDefinition:
    """A declared operation variable."""

    name: str
    var_type: str
    default_value: Any = None
    has_default: bool = False

    def __str__(self) -> str:
        text = f"${self.name}: {self.var_type}"
        if self.has_default:
            text += f" = {_format_value(self.default_value)}"
        return text


@dataclass(frozen=True)
class OperationDefinition:
    """A query, mutation or subscription; ``kind`` is None for the shorthand form."""

    kind: str | None
    name: str | None
    variable_definitions: tuple[VariableDefinition, ...]
    directives: tuple[Directive, ...]
    selection_set: SelectionSet

    def __str__(self) -> str:
        if self.kind is None:
            return str(self.selection_set)
        text = self.kind + (f" {self.name}" if self.name else "")
        if self.variable_definitions:
            text += "(" + ", ".join(str(v) for v in self.variable_definitions) + ")"
        return f"{text}{_format_directives(self.directives)} {self.selection_set}"


@dataclass(frozen=True)
class FragmentDefinition:
    """A named fragment definition."""

    name: str
    type_condition: str
    directives: tuple[Directive, ...]
    selection_set: SelectionSet

    def __str__(self) -> str:
        return (
            f"fragment {self.name} on {self.type_condition}"
            f"{_format_directives(self.directives)} {self.selection_set}"
        )


Definition = Union[OperationDefinition, FragmentDefinition]


@dataclass(frozen=True)
class Document:
    """A parsed GraphQL document."""

    definitions: tuple[Definition, ...]


@dataclass(frozen=True)
class _Token:
    kind: str
    value: Any
    line: int
    column: int


_NAME_RE = re.compile(r"[_A-Za-z][_0-9A-Za-z]*")
_NUMBER_RE = re.compile(r"-?(?:0|[1-9][0-9]*)(\.[0-9]+)?([eE][+-]?[0-9]+)?")
_PUNCTUATORS = frozenset("!$&()[]{}:=@|")
_ESCAPES = {'"': '"', "\\": "\\", "/": "/", "b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t"}
_HEX = frozenset("0123456789abcdefABCDEF")


def _syntax_error(message: str, line: int, column: int) -> QueryError:
    return QueryError(_INVALID, f"query parse error: Parse error at {line}:{column}: {message}")


def _block_string_value(raw: str) -> str:
    lines = raw.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    indents = [len(line) - len(line.lstrip(" \t")) for line in lines[1:] if line.strip(" \t")]
    if indents:
        common = min(indents)
        lines = [lines[0]] + [line[common:] for line in lines[1:]]
    while lines and not lines[0].strip(" \t"):
        lines.pop(0)
    while lines and not lines[-1].strip(" \t"):
        lines.pop()
    return "\n".join(lines)


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos, line, line_start = 0, 1, 0
    length = len(text)

    def fail(message: str, at: int) -> QueryError:
        return _syntax_error(message, line, at - line_start + 1)

    while pos < length:
        ch = text[pos]
        column = pos - line_start + 1
        if ch == "\n":
            pos += 1
            line += 1
            line_start = pos
            continue
        if ch in " \t\r,\ufeff":
            pos += 1
            continue
        if ch == "#":
            end = text.find("\n", pos)
            pos = length if end < 0 else end
            continue
        if text.startswith("...", pos):
            tokens.append(_Token("punct", "...", line, column))
            pos += 3
            continue
        if ch in _PUNCTUATORS:
            tokens.append(_Token("punct", ch, line, column))
            pos += 1
            continue
        match = _NAME_RE.match(text, pos)
        if match:
            tokens.append(_Token("name", match.group(), line, column))
            pos = match.end()
            continue
        match = _NUMBER_RE.match(text, pos)
        if match:
            end = match.end()
            if end < length and (text[end] in "._" or text[end].isalnum()):
                raise fail(f"invalid number near {text[pos:end + 1]!r}", end)
            literal = match.group()
            if match.group(1) or match.group(2):
                tokens.append(_Token("float", float(literal), line, column))
            else:
                number = int(literal)
                if not _I64_MIN <= number <= _I64_MAX:
                    raise fail(f"number too large: {literal}", pos)
                tokens.append(_Token("int", number, line, column))
            pos = end
            continue
        if text.startswith('"""', pos):
            end = pos + 3
            while True:
                end = text.find('"""', end)
                if end < 0:
                    raise fail("unterminated block string", pos)
                if text[end - 1] == "\\":
                    end += 3
                    continue
                break
            raw = text[pos + 3:end].replace('\\"""', '"""')
            tokens.append(_Token("string", _block_string_value(raw), line, column))
            span = text[pos:end + 3]
            newlines = span.count("\n")
            if newlines:
                line += newlines
                line_start = pos + span.rfind("\n") + 1
            pos = end + 3
            continue
        if ch == '"':
            chars: list[str] = []
            i = pos + 1
            while True:
                if i >= length or text[i] in "\n\r":
                    raise fail("unterminated string", pos)
                c = text[i]
                if c == '"':
                    break
                if c == "\\":
                    escape = text[i + 1:i + 2]
                    if escape in _ESCAPES:
                        chars.append(_ESCAPES[escape])
                        i += 2
                    elif escape == "u":
                        digits = text[i + 2:i + 6]
                        if len(digits) != 4 or not set(digits) <= _HEX:
                            raise fail("invalid unicode escape", i)
                        chars.append(chr(int(digits, 16)))
                        i += 6
                    else:
                        raise fail(f"invalid escape sequence \\{escape}", i)
                    continue
                chars.append(c)
                i += 1
            tokens.append(_Token("string", "".join(chars), line, column))
            pos = i + 1
            continue
        raise fail(f"unexpected character {ch!r}", pos)

    tokens.append(_Token("eof", None, line, pos - line_start + 1))
    return tokens


class _Parser:
    def __init__(self, tokens: list[_Token]) -> None:
        self._tokens = tokens
        self._pos = 0

    def _peek(self) -> _Token:
        return self._tokens[self._pos]

    def _advance(self) -> _Token:
        token = self._tokens[self._pos]
        if token.kind != "eof":
            self._pos += 1
        return token

    def _fail(self, message: str) -> QueryError:
        token = self._peek()
        return _syntax_error(message, token.line, token.column)

    def _describe(self) -> str:
        token = self._peek()
        if token.kind == "eof":
            return "end of input"
        if token.kind == "string":
            return json.dumps(token.value)
        return str(token.value)

    def _is_punct(self, value: str) -> bool:
        token = self._peek()
        return token.kind == "punct" and token.value == value

    def _is_name(self, value: str | None = None) -> bool:
        token = self._peek()
        return token.kind == "name" and (value is None or token.value == value)

    def _skip_punct(self, value: str) -> bool:
        if self._is_punct(value):
            self._advance()
            return True
        return False

    def _expect_punct(self, value: str) -> None:
        if not self._skip_punct(value):
            raise self._fail(f"expected {value!r}, got {self._describe()}")

    def _expect_name(self) -> str:
        if not self._is_name():
            raise self._fail(f"expected a name, got {self._describe()}")
        return self._advance().value

    def document(self) -> Document:
        definitions = []
        while self._peek().kind != "eof":
            definitions.append(self._definition())
        return Document(tuple(definitions))

    def _definition(self) -> Definition:
        if self._is_punct("{"):
            return OperationDefinition(None, None, (), (), self._selection_set())
        if self._is_name("query") or self._is_name("mutation") or self._is_name("subscription"):
            return self._operation()
        if self._is_name("fragment"):
            return self._fragment()
        raise self._fail(f"unexpected {self._describe()}")

    def _operation(self) -> OperationDefinition:
        kind = self._advance().value
        name = self._expect_name() if self._is_name() else None
        variables: list[VariableDefinition] = []
        if self._skip_punct("("):
            variables.append(self._variable_definition())
            while not self._skip_punct(")"):
                variables.append(self._variable_definition())
        directives = self._directives()
        return OperationDefinition(kind, name, tuple(variables), directives, self._selection_set())

    def _variable_definition(self) -> VariableDefinition:
        self._expect_punct("$")
        name = self._expect_name()
        self._expect_punct(":")
        var_type = self._type()
        if self._skip_punct("="):
            definition = VariableDefinition(name, var_type, self._value(const=True), True)
        else:
            definition = VariableDefinition(name, var_type)
        self._directives()
        return definition

    def _type(self) -> str:
        if self._skip_punct("["):
            text = f"[{self._type()}]"
            self._expect_punct("]")
        else:
            text = self._expect_name()
        if self._skip_punct("!"):
            text += "!"
        return text

    def _fragment(self) -> FragmentDefinition:
        self._advance()
        if self._is_name("on"):
            raise self._fail("fragment name cannot be `on`")
        name = self._expect_name()
        if not self._is_name("on"):
            raise self._fail(f"expected `on`, got {self._describe()}")
        self._advance()
        type_condition = self._expect_name()
        directives = self._directives()
        return FragmentDefinition(name, type_condition, directives, self._selection_set())

    def _directives(self) -> tuple[Directive, ...]:
        directives = []
        while self._skip_punct("@"):
            name = self._expect_name()
            arguments = self._arguments() if self._is_punct("(") else ()
            directives.append(Directive(name, arguments))
        return tuple(directives)

    def _arguments(self) -> tuple[tuple[str, Any], ...]:
        self._expect_punct("(")
        pairs = [self._argument()]
        while not self._skip_punct(")"):
            pairs.append(self._argument())
        return tuple(pairs)

    def _argument(self) -> tuple[str, Any]:
        name = self._expect_name()
        self._expect_punct(":")
        return name, self._value(const=False)

    def _selection_set(self) -> SelectionSet:
        self._expect_punct("{")
        items = [self._selection()]
        while not self._skip_punct("}"):
            items.append(self._selection())
        return SelectionSet(tuple(items))

    def _selection(self) -> Selection:
        if self._skip_punct("..."):
            if self._is_name("on"):
                self._advance()
                type_condition = self._expect_name()
                directives = self._directives()
                return InlineFragment(type_condition, directives, self._selection_set())
            if self._is_name():
                name = self._advance().value
                return FragmentSpread(name, self._directives())
            directives = self._directives()
            return InlineFragment(None, directives, self._selection_set())
        return self._field()

    def _field(self) -> Field:
        name = self._expect_name()
        alias = None
        if self._skip_punct(":"):
            alias, name = name, self._expect_name()
        arguments = self._arguments() if self._is_punct("(") else ()
        directives = self._directives()
        selection_set = self._selection_set() if self._is_punct("{") else SelectionSet()
        return Field(name, alias, arguments, directives, selection_set)

    def _value(self, const: bool) -> Any:
        token = self._peek()
        if token.kind == "punct":
            if token.value == "$":
                if const:
                    raise self._fail("variables are not allowed in constant values")
                self._advance()
                return Variable(self._expect_name())
            if token.value == "[":
                self._advance()
                items = []
                while not self._skip_punct("]"):
                    items.append(self._value(const))
                return items
            if token.value == "{":
                self._advance()
                entries: dict[str, Any] = {}
                while not self._skip_punct("}"):
                    key = self._expect_name()
                    self._expect_punct(":")
                    entries[key] = self._value(const)
                return dict(sorted(entries.items()))
        elif token.kind in ("int", "float", "string"):
            return self._advance().value
        elif token.kind == "name":
            name = self._advance().value
            if name == "true":
                return True
            if name == "false":
                return False
            if name == "null":
                return None
            return EnumValue(name)
        raise self._fail(f"expected a value, got {self._describe()}")


def parse_query(text: str) -> Document:
    """Parse a GraphQL query document."""
    return _Parser(_tokenize(text)).document()


def _invalid(message: str) -> QueryError:
    return QueryError(_INVALID, message)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _sort_exprs(options: list[Any]) -> list[SortExpr]:
    exprs = []
    for option in options:
        if not isinstance(option, dict):
            raise _invalid(
                f"sort condition should be defined as object, got: {_format_value(option)}"
            )
        if "field" not in option:
            raise _invalid("sort option requires `field` argument")
        column = option["field"]
        if not isinstance(column, str):
            raise _invalid(
                f"field in sort option should be a string, got: {_format_value(option)}"
            )
        if "order" not in option:
            exprs.append(column_sort_expr_asc(column))
            continue
        order = option["order"]
        if not isinstance(order, str):
            raise _invalid(f"sort order value should to be a String, got: {_format_value(order)}")
        if order == "desc":
            exprs.append(column_sort_expr_desc(column))
        elif order == "asc":
            exprs.append(column_sort_expr_asc(column))
        else:
            raise _invalid(f"sort order needs to be either `desc` or `asc`, got: {order}")
    return exprs


def _operand(value: Any) -> Literal:
    if isinstance(value, (bool, int, float, str)):
        return Literal(value)
    raise _invalid(f"invalid operand in filter predicate: {_format_value(value)}")


_OPERATORS = {
    "eq": Operator.EQ,
    "lt": Operator.LT,
    "lte": Operator.LT_EQ,
    "lteq": Operator.LT_EQ,
    "gt": Operator.GT,
    "gte": Operator.GT_EQ,
    "gteq": Operator.GT_EQ,
}


def _predicates(column: str, condition: Any) -> list[BinaryExpr]:
    if isinstance(condition, dict):
        predicates = []
        for op, operand in condition.items():
            right = _operand(operand)
            try:
                operator = _OPERATORS[op]
            except KeyError:
                raise _invalid(f"invalid filter predicate operator, got: {op}") from None
            predicates.append(binary_expr(Column(column), operator, right))
        return predicates
    if isinstance(condition, (bool, int, float, str)):
        # a bare literal means equality
        return [binary_expr(Column(column), Operator.EQ, _operand(condition))]
    raise _invalid(
        f"filter predicate should be defined as object, got: {_format_value(condition)}"
    )


def query_to_df(ctx: SessionContext, query: str) -> DataFrame:
    """Build the data frame a GraphQL query describes."""
    definitions = parse_query(query).definitions
    if not definitions:
        raise _invalid("empty query")
    if len(definitions) > 1:
        raise _invalid(f"only 1 definition allowed, got: {len(definitions)}")
    definition = definitions[0]
    if isinstance(definition, FragmentDefinition):
        raise _invalid("fragment definition not supported, please file a Github issue")
    if definition.kind not in (None, "query"):
        raise _invalid(f"Unsupported operation: {definition}")

    items = definition.selection_set.items
    if not items:
        raise _invalid("field not found in selection")
    field = items[0]
    if isinstance(field, FragmentSpread):
        raise _invalid("fragment spread selection not supported, please file a Github issue")
    if isinstance(field, InlineFragment):
        raise _invalid("inline fragment selection not supported, please file a Github issue")

    try:
        df = ctx.table(field.name)
    except ColumnQError as exc:
        raise QueryError.invalid_table(exc, field.name) from exc

    arguments: dict[str, Any] = {}
    for key, value in field.arguments:
        if key not in ("filter", "sort", "limit", "page"):
            raise _invalid(f"invalid query argument: {key}")
        arguments[key] = value

    if "filter" in arguments:
        filters = arguments["filter"]
        if not isinstance(filters, dict):
            raise _invalid(f"filter argument takes object as value, got: {_format_value(filters)}")
        for column, condition in filters.items():
            for predicate in _predicates(column, condition):
                try:
                    df = df.filter(predicate)
                except ColumnQError as exc:
                    raise QueryError.invalid_filter(exc) from exc

    names = []
    for selection in field.selection_set.items:
        if not isinstance(selection, Field):
            raise _invalid("selection set in query should only contain Fields")
        names.append(selection.name)
    try:
        df = df.select_columns(names)
    except ColumnQError as exc:
        raise QueryError(
            "invalid_selection_set", f"failed to apply selection set for query: {exc}"
        ) from exc

    if "sort" in arguments:
        options = arguments["sort"]
        if not isinstance(options, list):
            raise _invalid(f"sort argument takes list as value, got: {_format_value(options)}")
        try:
            df = df.sort(_sort_exprs(options))
        except ColumnQError as exc:
            raise QueryError.invalid_sort(exc) from exc

    if "limit" in arguments:
        limit = arguments["limit"]
        if not _is_int(limit):
            raise _invalid(f"limit argument takes int as value, got: {_format_value(limit)}")
        page = arguments.get("page")
        skip = page - 1 if _is_int(page) else 0
        if limit < 0:
            raise _invalid(f"limit value too large: {limit}")
        try:
            df = df.limit(skip * limit, limit)
        except ColumnQError as exc:
            raise QueryError.invalid_limit(exc) from exc

    return df


def exec_query(ctx: SessionContext, query: str) -> list[RecordBatch]:
    """Run a GraphQL query and return the result batches."""
    df = query_to_df(ctx, query)
    try:
        return df.collect()
    except ColumnQError as exc:
        raise QueryError.query_exec(exc) from exc