"""Recursive-descent parser for a PromQL subset.

Supports number and string literals, instant and range vector selectors,
function calls, aggregations (with ``by``/``without`` before or after the
body and an optional parameter), unary minus, parentheses and binary
operators with Prometheus precedence including ``bool``, ``on``/``ignoring``
and ``group_left``/``group_right``. Subqueries, ``offset`` and ``@`` are not
supported.
"""

from __future__ import annotations

import math
import re
from typing import List, Optional

from slo_promql.errors import PromQLParseError
from slo_promql.promql.ast import (
    METRIC_NAME_LABEL,
    AggregateExpr,
    BinaryExpr,
    Call,
    Expr,
    Expressions,
    LabelMatcher,
    MatchType,
    MatrixSelector,
    NumberLiteral,
    ParenExpr,
    StringLiteral,
    UnaryExpr,
    VectorMatching,
    VectorSelector,
)
from slo_promql.promql.duration import parse_duration
from slo_promql.promql.lexer import DURATION, EOF, IDENT, NUMBER, OP, STRING, Token, tokenize, unquote

AGGREGATORS = {
    "sum", "avg", "count", "min", "max", "group", "stddev", "stdvar",
    "topk", "bottomk", "count_values", "quantile",
}
PARAM_AGGREGATORS = {"topk", "bottomk", "count_values", "quantile"}

FUNCTIONS = {
    "abs", "absent", "absent_over_time", "avg_over_time", "ceil", "changes",
    "clamp", "clamp_max", "clamp_min", "count_over_time", "day_of_month",
    "day_of_week", "days_in_month", "delta", "deriv", "exp", "floor",
    "histogram_quantile", "holt_winters", "hour", "idelta", "increase",
    "irate", "label_join", "label_replace", "last_over_time", "ln", "log10",
    "log2", "max_over_time", "min_over_time", "minute", "month",
    "predict_linear", "present_over_time", "quantile_over_time", "rate",
    "resets", "round", "scalar", "sgn", "sort", "sort_desc", "sqrt",
    "stddev_over_time", "stdvar_over_time", "sum_over_time", "time",
    "timestamp", "vector", "year",
}

# Binary operator precedence, lowest first.
_PRECEDENCE = {
    "or": 1,
    "and": 2, "unless": 2,
    "==": 3, "!=": 3, "<=": 3, "<": 3, ">=": 3, ">": 3,
    "+": 4, "-": 4,
    "*": 5, "/": 5, "%": 5, "atan2": 5,
    "^": 6,
}
_COMPARISON_OPS = {"==", "!=", "<=", "<", ">=", ">"}
_SET_OPS = {"and", "or", "unless"}
_KEYWORD_OPS = {"and", "or", "unless", "atan2"}
_MATCH_OPS = {"=", "!=", "=~", "!~"}


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0

    # ---- token helpers ----

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int = 1) -> Token:
        return self.tokens[min(self.pos + offset, len(self.tokens) - 1)]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.kind != EOF:
            self.pos += 1
        return tok

    def error(self, message: str, tok: Optional[Token] = None) -> PromQLParseError:
        tok = tok or self.current
        return PromQLParseError(message, tok.pos, self.text)

    def is_op(self, value: str, tok: Optional[Token] = None) -> bool:
        tok = tok or self.current
        return tok.kind == OP and tok.value == value

    def is_keyword(self, value: str, tok: Optional[Token] = None) -> bool:
        tok = tok or self.current
        return tok.kind == IDENT and tok.value.lower() == value

    def expect_op(self, value: str) -> Token:
        if not self.is_op(value):
            found = self.current.value or "end of input"
            raise self.error(f"unexpected {found!r}, expected {value!r}")
        return self.advance()

    def expect_ident(self, what: str) -> str:
        if self.current.kind != IDENT:
            found = self.current.value or "end of input"
            raise self.error(f"unexpected {found!r}, expected {what}")
        return self.advance().value

    # ---- grammar ----

    def parse(self) -> Expr:
        if self.current.kind == EOF:
            raise self.error("no expression found in input")
        expr = self.parse_binary(1)
        if self.current.kind != EOF:
            raise self.error(f"unexpected {self.current.value!r}")
        return expr

    def _binary_op(self) -> Optional[str]:
        tok = self.current
        if tok.kind == OP and tok.value in _PRECEDENCE:
            return tok.value
        if tok.kind == IDENT and tok.value.lower() in _KEYWORD_OPS:
            return tok.value.lower()
        return None

    def parse_binary(self, min_prec: int) -> Expr:
        lhs = self.parse_unary()
        while True:
            op = self._binary_op()
            if op is None or _PRECEDENCE[op] < min_prec:
                return lhs
            self.advance()
            return_bool, matching = self.parse_binary_modifiers(op)
            # "^" is right associative, everything else left.
            next_prec = _PRECEDENCE[op] if op == "^" else _PRECEDENCE[op] + 1
            rhs = self.parse_binary(next_prec)
            lhs = BinaryExpr(op=op, lhs=lhs, rhs=rhs, return_bool=return_bool, matching=matching)

    def parse_binary_modifiers(self, op: str):
        return_bool = False
        if self.is_keyword("bool"):
            if op not in _COMPARISON_OPS:
                raise self.error("bool modifier can only be used on comparison operators")
            self.advance()
            return_bool = True

        matching = None
        if op in _SET_OPS:
            matching = VectorMatching(card="many-to-many")
        if self.is_keyword("on") or self.is_keyword("ignoring"):
            matching = matching or VectorMatching()
            matching.on = self.advance().value.lower() == "on"
            matching.matching_labels = self.parse_label_list()
            if self.is_keyword("group_left") or self.is_keyword("group_right"):
                if op in _SET_OPS:
                    raise self.error(f"no grouping allowed for {op!r} operation")
                side = self.advance().value.lower()
                matching.card = "many-to-one" if side == "group_left" else "one-to-many"
                if self.is_op("("):
                    matching.include = self.parse_label_list()
        return return_bool, matching

    def parse_unary(self) -> Expr:
        if self.is_op("-") or self.is_op("+"):
            op = self.advance().value
            operand = self.parse_binary(_PRECEDENCE["^"])
            if op == "+":
                return operand
            if isinstance(operand, NumberLiteral):
                return NumberLiteral(-operand.val)
            return UnaryExpr(op="-", expr=operand)
        return self.parse_postfix()

    def parse_postfix(self) -> Expr:
        expr = self.parse_primary()
        if self.is_op("["):
            if not isinstance(expr, VectorSelector):
                raise self.error("ranges only allowed for vector selectors")
            self.advance()
            tok = self.current
            if tok.kind != DURATION:
                raise self.error(f"unexpected {tok.value!r} in range selector, expected duration")
            self.advance()
            self.expect_op("]")
            expr = MatrixSelector(vector_selector=expr, range=parse_duration(tok.value))
        return expr

    def parse_primary(self) -> Expr:
        tok = self.current
        if tok.kind == NUMBER:
            self.advance()
            return NumberLiteral(_parse_number(tok.value))
        if tok.kind == STRING:
            self.advance()
            return StringLiteral(unquote(tok.value, tok.pos))
        if self.is_op("("):
            self.advance()
            inner = self.parse_binary(1)
            self.expect_op(")")
            return ParenExpr(expr=inner)
        if self.is_op("{"):
            return self.parse_selector(name="")
        if tok.kind == IDENT:
            nxt = self.peek()
            lowered = tok.value.lower()
            if lowered in ("inf", "nan") and not (self.is_op("(", nxt) or self.is_op("{", nxt)):
                self.advance()
                return NumberLiteral(math.inf if lowered == "inf" else math.nan)
            if tok.value in AGGREGATORS and (
                self.is_op("(", nxt) or self.is_keyword("by", nxt) or self.is_keyword("without", nxt)
            ):
                return self.parse_aggregate()
            if self.is_op("(", nxt):
                return self.parse_call()
            self.advance()
            return self.parse_selector(name=tok.value)
        found = tok.value or "end of input"
        raise self.error(f"unexpected {found!r}")

    def parse_call(self) -> Call:
        name_tok = self.advance()
        if name_tok.value not in FUNCTIONS:
            raise self.error(f"unknown function with name {name_tok.value!r}", name_tok)
        self.expect_op("(")
        args = Expressions()
        if not self.is_op(")"):
            args.append(self.parse_binary(1))
            while self.is_op(","):
                self.advance()
                args.append(self.parse_binary(1))
        self.expect_op(")")
        return Call(func=name_tok.value, args=args)

    def parse_aggregate(self) -> AggregateExpr:
        op = self.advance().value
        grouping: List[str] = []
        without = False
        modified = False
        if self.is_keyword("by") or self.is_keyword("without"):
            without = self.advance().value.lower() == "without"
            grouping = self.parse_label_list()
            modified = True

        self.expect_op("(")
        param = None
        if op in PARAM_AGGREGATORS:
            param = self.parse_binary(1)
            self.expect_op(",")
        body = self.parse_binary(1)
        self.expect_op(")")

        if not modified and (self.is_keyword("by") or self.is_keyword("without")):
            without = self.advance().value.lower() == "without"
            grouping = self.parse_label_list()
        return AggregateExpr(op=op, expr=body, param=param, grouping=grouping, without=without)

    def parse_label_list(self) -> List[str]:
        self.expect_op("(")
        labels: List[str] = []
        while not self.is_op(")"):
            labels.append(self.expect_ident("label name"))
            if not self.is_op(","):
                break
            self.advance()
        self.expect_op(")")
        return labels

    def parse_selector(self, name: str) -> VectorSelector:
        start = self.current
        matchers: List[LabelMatcher] = []
        if self.is_op("{"):
            self.advance()
            while not self.is_op("}"):
                matchers.append(self.parse_matcher())
                if not self.is_op(","):
                    break
                self.advance()
            self.expect_op("}")

        if name:
            if any(m.name == METRIC_NAME_LABEL for m in matchers):
                raise self.error("metric name must not be set twice", start)
        elif not any(_matches_non_empty(m) for m in matchers):
            raise self.error("vector selector must contain at least one non-empty matcher", start)
        return VectorSelector(name=name, label_matchers=matchers)

    def parse_matcher(self) -> LabelMatcher:
        label = self.expect_ident("label matching")
        tok = self.current
        if tok.kind != OP or tok.value not in _MATCH_OPS:
            raise self.error(f"unexpected {tok.value!r} in label matching, expected label matching operator")
        self.advance()
        value_tok = self.current
        if value_tok.kind != STRING:
            raise self.error(f"unexpected {value_tok.value!r} in label matching, expected string")
        self.advance()
        return LabelMatcher(name=label, type=MatchType(tok.value), value=unquote(value_tok.value, value_tok.pos))


def _parse_number(raw: str) -> float:
    if raw[:2].lower() == "0x":
        return float(int(raw, 16))
    return float(raw)


def _matches_non_empty(m: LabelMatcher) -> bool:
    # A matcher that rejects the empty string selects something specific.
    if m.type == MatchType.EQUAL:
        return m.value != ""
    if m.type == MatchType.NOT_EQUAL:
        return m.value == ""
    try:
        matches_empty = re.fullmatch(m.value, "") is not None
    except re.error:
        return False
    if m.type == MatchType.NOT_REGEX:
        return matches_empty
    return not matches_empty


def parse_expr(text: str) -> Expr:
    """Parse PromQL text into a freshly allocated expression tree."""
    return _Parser(text).parse()


def parse_metric_selector(text: str) -> VectorSelector:
    """Parse a single series selector such as ``up{job="api"}``.

    A ``__name__="..."`` equality matcher is folded into the selector's name.
    """
    expr = parse_expr(text)
    if not isinstance(expr, VectorSelector):
        raise PromQLParseError(f"expected a metric selector, got {type(expr).__name__}", -1, text)
    if not expr.name:
        for m in list(expr.label_matchers):
            if m.name == METRIC_NAME_LABEL and m.type == MatchType.EQUAL:
                expr.name = m.value
                expr.label_matchers.remove(m)
                break
    return expr
