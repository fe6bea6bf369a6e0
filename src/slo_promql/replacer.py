"""Rewrites template expression trees with an objective's concrete values."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Iterable, List, Union

from slo_promql.errors import UnsupportedNodeError
from slo_promql.promql.ast import (
    AggregateExpr,
    BinaryExpr,
    Call,
    Expressions,
    LabelMatcher,
    MatrixSelector,
    Node,
    NumberLiteral,
    ParenExpr,
    VectorSelector,
)
from slo_promql.templates import ERROR_METRIC_PLACEHOLDER, ERRORS_TAG, MATCHERS_TAG, TARGET_SENTINEL


@dataclass
class ObjectiveReplacer:
    """Values substituted into a parsed template.

    ``replace()`` mutates the tree in place; callers must pass a tree they
    own exclusively, normally one fresh from ``parse_expr``.
    """

    metric: str = ""
    matchers: List[LabelMatcher] = field(default_factory=list)
    error_metric: str = ""
    error_matchers: List[LabelMatcher] = field(default_factory=list)
    grouping: List[str] = field(default_factory=list)
    window: timedelta = timedelta(0)
    target: float = 0.0

    def replace(self, node: Union[Node, Expressions]) -> None:
        if isinstance(node, AggregateExpr):
            if node.grouping:
                node.grouping = list(self.grouping)
            self.replace(node.expr)
        elif isinstance(node, Call):
            self.replace(node.args)
        elif isinstance(node, Expressions):
            for expr in node:
                self.replace(expr)
        elif isinstance(node, MatrixSelector):
            node.range = self.window
            self.replace(node.vector_selector)
        elif isinstance(node, VectorSelector):
            self._replace_selector(node)
        elif isinstance(node, BinaryExpr):
            self.replace(node.lhs)
            self.replace(node.rhs)
        elif isinstance(node, ParenExpr):
            self.replace(node.expr)
        elif isinstance(node, NumberLiteral):
            if node.val == TARGET_SENTINEL:
                node.val = self.target
        else:
            raise UnsupportedNodeError(node)

    def _replace_selector(self, node: VectorSelector) -> None:
        if node.name == ERROR_METRIC_PLACEHOLDER:
            node.name = self.error_metric
        else:
            node.name = self.metric

        if not node.label_matchers:
            node.label_matchers = list(self.matchers)
            return
        # Selectors with labels but no tag were already substituted; keep them.
        for m in node.label_matchers:
            if m.name == MATCHERS_TAG:
                matchers = self.error_matchers if m.value == ERRORS_TAG else self.matchers
                node.label_matchers = list(matchers)
                return


def grouping_labels(
    error_matchers: Iterable[LabelMatcher],
    total_matchers: Iterable[LabelMatcher],
) -> List[str]:
    """Label names constrained on the error side but not on the total side.

    These are the labels that tell an error series apart from a total
    series (e.g. ``code``), so range queries group by them.
    """
    labels = {m.name for m in error_matchers}
    labels.difference_update(m.name for m in total_matchers)
    return sorted(labels)
