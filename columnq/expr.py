"""Expressions used to build filters, projections and sort orders."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


@dataclass(frozen=True)
class Column:
    """Reference to a column by name."""

    name: str

    def __str__(self) -> str:
        return _quote_identifier(self.name)


@dataclass(frozen=True)
class Literal:
    """A constant value: None, bool, int, float or str."""

    value: Any

    def __post_init__(self) -> None:
        if self.value is not None and not isinstance(self.value, (bool, int, float, str)):
            raise TypeError(f"unsupported literal value: {self.value!r}")

    def __str__(self) -> str:
        value = self.value
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float):
            if math.isnan(value):
                return "NULL"
            if math.isinf(value):
                return "1e999" if value > 0 else "-1e999"
            return repr(value)
        return "'" + value.replace("'", "''") + "'"


class Operator(Enum):
    """Binary operators that can join two expressions."""

    EQ = "="
    NOT_EQ = "!="
    LT = "<"
    LT_EQ = "<="
    GT = ">"
    GT_EQ = ">="
    AND = "AND"
    OR = "OR"


@dataclass(frozen=True)
class BinaryExpr:
    """Two expressions joined by an operator."""

    left: "Expr"
    op: Operator
    right: "Expr"

    def __str__(self) -> str:
        return f"({self.left} {self.op.value} {self.right})"


Expr = Union[Column, Literal, BinaryExpr]


@dataclass(frozen=True)
class SortExpr:
    """Sort key: an expression, a direction and where nulls go."""

    expr: Expr
    asc: bool = True
    nulls_first: bool = True

    def __str__(self) -> str:
        text = f"{self.expr} {'ASC' if self.asc else 'DESC'}"
        # the engine puts nulls first for ascending and last for descending order
        if self.nulls_first != self.asc:
            nulls = "DESC" if self.nulls_first else "ASC"
            text = f"({self.expr} IS NULL) {nulls}, {text}"
        return text


def column_sort_expr_asc(column: str) -> SortExpr:
    """Ascending sort on a column, nulls first."""
    return SortExpr(Column(column), asc=True, nulls_first=True)


def column_sort_expr_desc(column: str) -> SortExpr:
    """Descending sort on a column, nulls first."""
    return SortExpr(Column(column), asc=False, nulls_first=True)


def binary_expr(left: Expr, op: Operator, right: Expr) -> BinaryExpr:
    """Join two expressions with an operator."""
    return BinaryExpr(left, op, right)