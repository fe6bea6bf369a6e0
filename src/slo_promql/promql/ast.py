"""PromQL expression tree.

Nodes are plain mutable dataclasses; ``str(node)`` renders PromQL text using
the same formatting as the Prometheus reference implementation, e.g.
``sum by(job) (rate(http_requests_total{code=~"5.."}[5m]))``.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Iterator, List, Optional, Union

from slo_promql.promql.duration import format_duration

METRIC_NAME_LABEL = "__name__"


class MatchType(str, Enum):
    """Label matcher operator."""

    EQUAL = "="
    NOT_EQUAL = "!="
    REGEX = "=~"
    NOT_REGEX = "!~"


def quote(value: str) -> str:
    """Double-quote a string the way Go's %q does for printable text."""
    return json.dumps(value, ensure_ascii=False)


@dataclass(frozen=True)
class LabelMatcher:
    """A single ``name<op>"value"`` constraint on a series selector."""

    name: str
    type: MatchType
    value: str

    def __str__(self) -> str:
        return f"{self.name}{MatchType(self.type).value}{quote(self.value)}"


def format_number(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


class Node:
    """Base class of every expression tree node."""

    def children(self) -> List["Node"]:
        return []


@dataclass
class NumberLiteral(Node):
    val: float

    def __str__(self) -> str:
        return format_number(self.val)


@dataclass
class StringLiteral(Node):
    val: str

    def __str__(self) -> str:
        return quote(self.val)


@dataclass
class VectorSelector(Node):
    """Instant vector selector, e.g. ``http_requests_total{job="api"}``."""

    name: str
    label_matchers: List[LabelMatcher] = field(default_factory=list)

    def __str__(self) -> str:
        labels = []
        for m in self.label_matchers:
            # The name matcher is implied by the metric name itself.
            if (
                m.name == METRIC_NAME_LABEL
                and m.type == MatchType.EQUAL
                and m.value == self.name
            ):
                continue
            labels.append(str(m))
        if not labels:
            return self.name
        return f"{self.name}{{{','.join(sorted(labels))}}}"


@dataclass
class MatrixSelector(Node):
    """Range vector selector, e.g. ``http_requests_total[5m]``."""

    vector_selector: VectorSelector
    range: timedelta

    def children(self) -> List[Node]:
        return [self.vector_selector]

    def __str__(self) -> str:
        return f"{self.vector_selector}[{format_duration(self.range)}]"


class Expressions(list):
    """Ordered argument list of a function call."""

    def children(self) -> List[Node]:
        return list(self)

    def __str__(self) -> str:
        return ", ".join(str(e) for e in self)


@dataclass
class Call(Node):
    func: str
    args: Expressions = field(default_factory=Expressions)

    def children(self) -> List[Node]:
        return [self.args]  # type: ignore[list-item]

    def __str__(self) -> str:
        return f"{self.func}({self.args})"


@dataclass
class AggregateExpr(Node):
    """Aggregation such as ``sum by(job) (expr)`` or ``topk(5, expr)``."""

    op: str
    expr: "Expr"
    param: Optional["Expr"] = None
    grouping: List[str] = field(default_factory=list)
    without: bool = False

    def children(self) -> List[Node]:
        if self.param is not None:
            return [self.param, self.expr]
        return [self.expr]

    def _op_string(self) -> str:
        out = self.op
        if self.without:
            out += f" without({', '.join(self.grouping)}) "
        elif self.grouping:
            out += f" by({', '.join(self.grouping)}) "
        return out

    def __str__(self) -> str:
        out = self._op_string() + "("
        if self.param is not None:
            out += f"{self.param}, "
        return out + f"{self.expr})"


@dataclass
class VectorMatching:
    """``on``/``ignoring`` and ``group_left``/``group_right`` modifiers."""

    card: str = "one-to-one"  # one-to-one, many-to-one, one-to-many, many-to-many
    matching_labels: List[str] = field(default_factory=list)
    on: bool = False
    include: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        if not self.matching_labels and not self.on:
            return ""
        keyword = "on" if self.on else "ignoring"
        out = f" {keyword}({', '.join(self.matching_labels)})"
        if self.card == "many-to-one":
            out += f" group_left({', '.join(self.include)})"
        elif self.card == "one-to-many":
            out += f" group_right({', '.join(self.include)})"
        return out


@dataclass
class BinaryExpr(Node):
    op: str
    lhs: "Expr"
    rhs: "Expr"
    return_bool: bool = False
    matching: Optional[VectorMatching] = None

    def children(self) -> List[Node]:
        return [self.lhs, self.rhs]

    def __str__(self) -> str:
        modifiers = " bool" if self.return_bool else ""
        if self.matching is not None:
            modifiers += str(self.matching)
        return f"{self.lhs} {self.op}{modifiers} {self.rhs}"


@dataclass
class ParenExpr(Node):
    expr: "Expr"

    def children(self) -> List[Node]:
        return [self.expr]

    def __str__(self) -> str:
        return f"({self.expr})"


@dataclass
class UnaryExpr(Node):
    op: str
    expr: "Expr"

    def children(self) -> List[Node]:
        return [self.expr]

    def __str__(self) -> str:
        return f"{self.op}{self.expr}"


Expr = Union[
    NumberLiteral,
    StringLiteral,
    VectorSelector,
    MatrixSelector,
    Call,
    AggregateExpr,
    BinaryExpr,
    ParenExpr,
    UnaryExpr,
]


def walk(node: Union[Node, Expressions]) -> Iterator[Union[Node, Expressions]]:
    """Yield ``node`` and all of its descendants, depth first."""
    yield node
    for child in node.children():
        yield from walk(child)
