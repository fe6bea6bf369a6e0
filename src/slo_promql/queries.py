"""PromQL query generation for objectives.

Every generator picks a template for the objective's indicator kind, parses
it into a fresh tree, substitutes the objective's values and renders the
result::

    >>> query_total(objective, "5m").query
    'sum by(handler) (increase(http_requests_total{job="api"}[5m]))'

Generators never raise. Failures come back as a ``QueryResult`` whose
``reason`` says whether the objective had no usable indicator or a built-in
template is broken.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from slo_promql import templates
from slo_promql.errors import (
    FailureReason,
    PromQLParseError,
    QueryGenerationError,
    TemplateError,
)
from slo_promql.objective import Objective
from slo_promql.promql.duration import to_timedelta
from slo_promql.promql.parser import parse_expr
from slo_promql.replacer import ObjectiveReplacer, grouping_labels

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryResult:
    """Outcome of a single query generation."""

    query: str = ""
    reason: FailureReason | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.reason is None

    @property
    def is_unspecified(self) -> bool:
        """True when the objective had no usable indicator."""
        return self.reason == FailureReason.UNSPECIFIED_INDICATOR

    def unwrap(self) -> str:
        """Return the query text or raise QueryGenerationError."""
        if self.reason is not None:
            raise QueryGenerationError(self.reason, self.detail)
        return self.query

    def to_dict(self) -> dict[str, Any]:
        if self.reason is None:
            return {"query": self.query}
        return {"error": self.reason.value, "detail": self.detail}

    def __str__(self) -> str:
        return self.query


UNSPECIFIED = QueryResult(
    reason=FailureReason.UNSPECIFIED_INDICATOR,
    detail="objective has neither a ratio nor a latency indicator",
)


def _generate(kind: str, template: str, replacer: ObjectiveReplacer) -> QueryResult:
    try:
        expr = parse_expr(template)
    except PromQLParseError as e:
        logger.error("Query template for %s does not parse", kind, exc_info=True)
        return QueryResult(reason=FailureReason.TEMPLATE_PARSE_ERROR, detail=str(e))
    try:
        replacer.replace(expr)
    except TemplateError as e:
        logger.error("Query template for %s cannot be parameterized", kind, exc_info=True)
        return QueryResult(reason=FailureReason.UNSUPPORTED_NODE, detail=str(e))
    query = str(expr)
    logger.debug("Generated %s query: %s", kind, query)
    return QueryResult(query=query)


def _unspecified(kind: str, objective: Objective) -> QueryResult:
    logger.debug("Objective %r has no indicator, skipping %s query", objective.name, kind)
    return UNSPECIFIED


def query_total(objective: Objective, window: timedelta | str) -> QueryResult:
    """Total number of requests over ``window``."""
    window = to_timedelta(window)
    indicator = objective.indicator
    if indicator.has_ratio:
        ratio = indicator.ratio
        return _generate("total", templates.RATIO_TOTAL, ObjectiveReplacer(
            metric=ratio.total.name,
            matchers=ratio.total.label_matchers,
            grouping=ratio.grouping,
            window=window,
        ))
    if indicator.has_latency:
        latency = indicator.latency
        return _generate("total", templates.LATENCY_TOTAL, ObjectiveReplacer(
            metric=latency.total.name,
            matchers=latency.total.label_matchers,
            grouping=latency.grouping,
            window=window,
        ))
    return _unspecified("total", objective)


def query_errors(objective: Objective, window: timedelta | str) -> QueryResult:
    """Number of bad requests over ``window``.

    For latency indicators this is total minus the requests served within
    the threshold.
    """
    window = to_timedelta(window)
    indicator = objective.indicator
    if indicator.has_ratio:
        ratio = indicator.ratio
        return _generate("errors", templates.RATIO_ERRORS, ObjectiveReplacer(
            metric=ratio.errors.name,
            matchers=ratio.errors.label_matchers,
            grouping=ratio.grouping,
            window=window,
        ))
    if indicator.has_latency:
        latency = indicator.latency
        return _generate("errors", templates.LATENCY_ERRORS, ObjectiveReplacer(
            metric=latency.total.name,
            matchers=latency.total.label_matchers,
            error_metric=latency.success.name,
            error_matchers=latency.success.label_matchers,
            grouping=latency.grouping,
            window=window,
        ))
    return _unspecified("errors", objective)


def query_error_budget(objective: Objective) -> QueryResult:
    """Fraction of the error budget left over the objective's own window."""
    indicator = objective.indicator
    if indicator.has_ratio:
        ratio = indicator.ratio
        return _generate("error budget", templates.RATIO_ERROR_BUDGET, ObjectiveReplacer(
            metric=ratio.total.name,
            matchers=ratio.total.label_matchers,
            error_metric=ratio.errors.name,
            error_matchers=ratio.errors.label_matchers,
            grouping=ratio.grouping,
            window=objective.window,
            target=objective.target,
        ))
    if indicator.has_latency:
        latency = indicator.latency
        return _generate("error budget", templates.LATENCY_ERROR_BUDGET, ObjectiveReplacer(
            metric=latency.total.name,
            matchers=latency.total.label_matchers,
            error_metric=latency.success.name,
            error_matchers=latency.success.label_matchers,
            grouping=latency.grouping,
            window=objective.window,
            target=objective.target,
        ))
    return _unspecified("error budget", objective)


def request_range(objective: Objective, timerange: timedelta | str) -> QueryResult:
    """Per-second request rate over ``timerange``."""
    timerange = to_timedelta(timerange)
    indicator = objective.indicator
    if indicator.has_ratio:
        ratio = indicator.ratio
        return _generate("request range", templates.RATIO_REQUEST_RANGE, ObjectiveReplacer(
            metric=ratio.total.name,
            matchers=ratio.total.label_matchers,
            grouping=grouping_labels(ratio.errors.label_matchers, ratio.total.label_matchers),
            window=timerange,
            target=objective.target,
        ))
    if indicator.has_latency:
        latency = indicator.latency
        return _generate("request range", templates.LATENCY_REQUEST_RANGE, ObjectiveReplacer(
            metric=latency.total.name,
            matchers=latency.total.label_matchers,
            error_metric=latency.success.name,
            error_matchers=latency.success.label_matchers,
            window=timerange,
        ))
    return _unspecified("request range", objective)


def errors_range(objective: Objective, timerange: timedelta | str) -> QueryResult:
    """Per-second error rate over ``timerange``.

    Ratio indicators return errors as a fraction of all requests, split by
    the labels only the error selector constrains. Latency indicators return
    the rate of requests slower than the threshold.
    """
    timerange = to_timedelta(timerange)
    indicator = objective.indicator
    if indicator.has_ratio:
        ratio = indicator.ratio
        return _generate("errors range", templates.RATIO_ERRORS_RANGE, ObjectiveReplacer(
            metric=ratio.total.name,
            matchers=ratio.total.label_matchers,
            error_metric=ratio.errors.name,
            error_matchers=ratio.errors.label_matchers,
            grouping=grouping_labels(ratio.errors.label_matchers, ratio.total.label_matchers),
            window=timerange,
        ))
    if indicator.has_latency:
        latency = indicator.latency
        return _generate("errors range", templates.LATENCY_ERRORS_RANGE, ObjectiveReplacer(
            metric=latency.total.name,
            matchers=latency.total.label_matchers,
            error_metric=latency.success.name,
            error_matchers=latency.success.label_matchers,
            window=timerange,
        ))
    return _unspecified("errors range", objective)


@dataclass(frozen=True)
class QuerySet:
    """All queries for one objective, as a dashboard consumes them."""

    objective: str
    total: QueryResult
    errors: QueryResult
    error_budget: QueryResult
    request_range: QueryResult
    errors_range: QueryResult

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results().values())

    def results(self) -> dict[str, QueryResult]:
        return {
            "total": self.total,
            "errors": self.errors,
            "error_budget": self.error_budget,
            "request_range": self.request_range,
            "errors_range": self.errors_range,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "objective": self.objective,
            "queries": {name: r.to_dict() for name, r in self.results().items()},
        }


def objective_queries(
    objective: Objective,
    timerange: timedelta | str = timedelta(hours=1),
    window: timedelta | str | None = None,
) -> QuerySet:
    """Generate every query for ``objective``.

    ``window`` defaults to the objective's own window; ``timerange`` is the
    lookback used by the range queries.
    """
    window = objective.window if window is None else window
    return QuerySet(
        objective=objective.name,
        total=query_total(objective, window),
        errors=query_errors(objective, window),
        error_budget=query_error_budget(objective),
        request_range=request_range(objective, timerange),
        errors_range=errors_range(objective, timerange),
    )
