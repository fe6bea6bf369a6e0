"""Tests for the PromQL parser and tree rendering."""

from datetime import timedelta

import pytest

from slo_promql.errors import PromQLParseError
from slo_promql.promql import (
    AggregateExpr,
    BinaryExpr,
    Call,
    LabelMatcher,
    MatchType,
    MatrixSelector,
    NumberLiteral,
    ParenExpr,
    StringLiteral,
    UnaryExpr,
    VectorSelector,
    parse_expr,
    parse_metric_selector,
    walk,
)


class TestSelectors:
    def test_bare_metric(self) -> None:
        expr = parse_expr("up")
        assert expr == VectorSelector(name="up", label_matchers=[])
        assert str(expr) == "up"

    def test_empty_braces(self) -> None:
        expr = parse_expr("metric{}")
        assert isinstance(expr, VectorSelector)
        assert expr.label_matchers == []
        assert str(expr) == "metric"

    def test_matchers(self) -> None:
        expr = parse_expr('http_requests_total{job="api", code=~"5..", env!="dev", le!~"0.1"}')
        assert isinstance(expr, VectorSelector)
        assert expr.label_matchers == [
            LabelMatcher("job", MatchType.EQUAL, "api"),
            LabelMatcher("code", MatchType.REGEX, "5.."),
            LabelMatcher("env", MatchType.NOT_EQUAL, "dev"),
            LabelMatcher("le", MatchType.NOT_REGEX, "0.1"),
        ]

    def test_matchers_render_sorted(self) -> None:
        assert str(parse_expr('up{z="1",a="2"}')) == 'up{a="2",z="1"}'

    def test_trailing_comma(self) -> None:
        assert str(parse_expr('up{job="api",}')) == 'up{job="api"}'

    def test_single_quoted_value(self) -> None:
        assert str(parse_expr("up{job='api'}")) == 'up{job="api"}'

    def test_nameless_selector(self) -> None:
        expr = parse_expr('{job="api"}')
        assert isinstance(expr, VectorSelector)
        assert expr.name == ""
        assert str(expr) == '{job="api"}'

    def test_matrix_selector(self) -> None:
        expr = parse_expr('up{job="api"}[5m]')
        assert isinstance(expr, MatrixSelector)
        assert expr.range == timedelta(minutes=5)
        assert expr.vector_selector.name == "up"
        assert str(expr) == 'up{job="api"}[5m]'

    def test_compound_range(self) -> None:
        assert str(parse_expr("up[90m]")) == "up[1h30m]"

    def test_metric_selector_folds_name(self) -> None:
        sel = parse_metric_selector('{__name__="up",job="api"}')
        assert sel.name == "up"
        assert sel.label_matchers == [LabelMatcher("job", MatchType.EQUAL, "api")]


class TestExpressions:
    def test_aggregation_by(self) -> None:
        expr = parse_expr("sum by (job, handler) (rate(up[5m]))")
        assert isinstance(expr, AggregateExpr)
        assert expr.op == "sum"
        assert expr.grouping == ["job", "handler"]
        assert str(expr) == "sum by(job, handler) (rate(up[5m]))"

    def test_aggregation_trailing_by(self) -> None:
        assert str(parse_expr("sum(rate(up[5m])) by (job)")) == "sum by(job) (rate(up[5m]))"

    def test_aggregation_without(self) -> None:
        assert str(parse_expr("max without(instance) (up)")) == "max without(instance) (up)"

    def test_aggregation_without_grouping(self) -> None:
        assert str(parse_expr("sum(up)")) == "sum(up)"

    def test_aggregation_param(self) -> None:
        expr = parse_expr("topk(5, up)")
        assert isinstance(expr, AggregateExpr)
        assert expr.param == NumberLiteral(5.0)
        assert str(expr) == "topk(5, up)"

    def test_call(self) -> None:
        expr = parse_expr("increase(metric{}[1s])")
        assert isinstance(expr, Call)
        assert expr.func == "increase"
        assert isinstance(expr.args[0], MatrixSelector)

    def test_call_multiple_args(self) -> None:
        expr = parse_expr('label_replace(up, "dst", "$1", "src", "(.*)")')
        assert isinstance(expr, Call)
        assert len(expr.args) == 5
        assert expr.args[1] == StringLiteral("dst")
        assert str(expr) == 'label_replace(up, "dst", "$1", "src", "(.*)")'

    def test_precedence(self) -> None:
        expr = parse_expr("1 + 2 * 3")
        assert isinstance(expr, BinaryExpr)
        assert expr.op == "+"
        assert isinstance(expr.rhs, BinaryExpr)
        assert expr.rhs.op == "*"

    def test_left_associative(self) -> None:
        expr = parse_expr("a - b - c")
        assert isinstance(expr, BinaryExpr)
        assert isinstance(expr.lhs, BinaryExpr)
        assert str(expr) == "a - b - c"

    def test_power_right_associative(self) -> None:
        expr = parse_expr("2 ^ 3 ^ 2")
        assert isinstance(expr, BinaryExpr)
        assert isinstance(expr.rhs, BinaryExpr)

    def test_set_operator(self) -> None:
        expr = parse_expr("increase(up[5m]) or vector(0)")
        assert isinstance(expr, BinaryExpr)
        assert expr.op == "or"
        assert str(expr) == "increase(up[5m]) or vector(0)"

    def test_comparison_bool(self) -> None:
        assert str(parse_expr("up > bool 0")) == "up > bool 0"

    def test_vector_matching(self) -> None:
        text = "a / on(job) group_left(instance) b"
        assert str(parse_expr(text)) == text

    def test_ignoring(self) -> None:
        assert str(parse_expr("a - ignoring(code) b")) == "a - ignoring(code) b"

    def test_parens_kept(self) -> None:
        expr = parse_expr("(1 - 0.99)")
        assert isinstance(expr, ParenExpr)
        assert str(expr) == "(1 - 0.99)"

    def test_negative_number_folded(self) -> None:
        assert parse_expr("-1") == NumberLiteral(-1.0)

    def test_unary_minus(self) -> None:
        expr = parse_expr("-up")
        assert isinstance(expr, UnaryExpr)
        assert str(expr) == "-up"

    def test_numbers(self) -> None:
        assert str(parse_expr("0.696969")) == "0.696969"
        assert str(parse_expr("1")) == "1"
        assert str(parse_expr("1e3")) == "1000"
        assert str(parse_expr("0x10")) == "16"
        assert str(parse_expr("Inf")) == "+Inf"

    def test_multiline_with_comment(self) -> None:
        text = """
        # request rate
        sum(
          rate(up[5m])
        )
        """
        assert str(parse_expr(text)) == "sum(rate(up[5m]))"

    def test_walk(self) -> None:
        expr = parse_expr("sum(rate(up[5m])) / sum(rate(down[5m]))")
        names = [n.name for n in walk(expr) if isinstance(n, VectorSelector)]
        assert names == ["up", "down"]


class TestParseErrors:
    @pytest.mark.parametrize(
        "text",
        [
            "",
            "sum(",
            "rate(up)[5m]",
            "{}",
            'up{job=api}',
            "up{job}",
            "nosuchfunc(up)",
            "up[5]",
            "up +",
            'up{__name__="x"}',
            "a + bool b",
            "a and on(job) group_left b",
            "up )",
        ],
    )
    def test_invalid(self, text: str) -> None:
        with pytest.raises(PromQLParseError):
            parse_expr(text)

    def test_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_expr("sum(")

    def test_error_position(self) -> None:
        with pytest.raises(PromQLParseError) as exc_info:
            parse_expr("up{job=api}")
        assert exc_info.value.position == 7

    def test_metric_selector_rejects_expressions(self) -> None:
        with pytest.raises(PromQLParseError):
            parse_metric_selector("sum(up)")
