"""PromQL expression trees: parse text into a tree, ``str()`` a tree back to text."""

from slo_promql.promql.ast import (
    AggregateExpr,
    BinaryExpr,
    Call,
    Expr,
    Expressions,
    LabelMatcher,
    MatchType,
    MatrixSelector,
    Node,
    NumberLiteral,
    ParenExpr,
    StringLiteral,
    UnaryExpr,
    VectorMatching,
    VectorSelector,
    walk,
)
from slo_promql.promql.duration import format_duration, parse_duration, to_timedelta
from slo_promql.promql.parser import parse_expr, parse_metric_selector

__all__ = [
    "AggregateExpr",
    "BinaryExpr",
    "Call",
    "Expr",
    "Expressions",
    "LabelMatcher",
    "MatchType",
    "MatrixSelector",
    "Node",
    "NumberLiteral",
    "ParenExpr",
    "StringLiteral",
    "UnaryExpr",
    "VectorMatching",
    "VectorSelector",
    "walk",
    "format_duration",
    "parse_duration",
    "to_timedelta",
    "parse_expr",
    "parse_metric_selector",
]
