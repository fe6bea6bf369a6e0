"""Query templates and the placeholder tokens they use.

Templates are ordinary PromQL. Placeholders are written as regular syntax so
the parser can read them:

* ``metric`` / ``errorMetric``: selector names replaced by the total and the
  error (or success) metric.
* ``{matchers="total"}`` / ``{matchers="errors"}``: tags telling the replacer
  which matcher set a selector receives when a template has two legs.
* ``by(grouping)`` / ``by(group)``: any non-empty grouping is replaced.
* ``0.696969``: replaced by the objective's target.
* ``[1s]``: every range is replaced by the requested window.
"""

from __future__ import annotations

from slo_promql.errors import PromQLParseError, TemplateError
from slo_promql.promql.ast import NumberLiteral, VectorSelector, walk
from slo_promql.promql.parser import parse_expr

METRIC_PLACEHOLDER = "metric"
ERROR_METRIC_PLACEHOLDER = "errorMetric"
MATCHERS_TAG = "matchers"
TOTAL_TAG = "total"
ERRORS_TAG = "errors"
GROUPING_PLACEHOLDERS = ("grouping", "group")
TARGET_SENTINEL = 0.696969

RATIO_TOTAL = "sum by(grouping) (increase(metric{}[1s]))"
LATENCY_TOTAL = RATIO_TOTAL

RATIO_ERRORS = "sum by(grouping) (increase(metric{}[1s]))"
LATENCY_ERRORS = (
    'sum by(grouping) (increase(metric{matchers="total"}[1s]))'
    " - "
    'sum by(grouping) (increase(errorMetric{matchers="errors"}[1s]))'
)

RATIO_ERROR_BUDGET = """
(
  (1 - 0.696969)
  -
  (
    sum by(job, handler) (increase(errorMetric{matchers="errors"}[1s]) or vector(0))
    /
    sum by(job, handler) (increase(metric{matchers="total"}[1s]))
  )
)
/
(1 - 0.696969)
"""

LATENCY_ERROR_BUDGET = """
(
  (1 - 0.696969)
  -
  (
    1 -
    sum(increase(errorMetric{matchers="errors"}[1s]) or vector(0))
    /
    sum(increase(metric{matchers="total"}[1s]))
  )
)
/
(1 - 0.696969)
"""

RATIO_REQUEST_RANGE = "sum by(group) (rate(metric{}[1s])) > 0"
LATENCY_REQUEST_RANGE = "sum(rate(metric{}[1s]))"

RATIO_ERRORS_RANGE = (
    'sum by(group) (rate(errorMetric{matchers="errors"}[1s]))'
    " / "
    'scalar(sum(rate(metric{matchers="total"}[1s])))'
)
LATENCY_ERRORS_RANGE = (
    'sum(rate(metric{matchers="total"}[1s]))'
    " - "
    'sum(rate(errorMetric{matchers="errors"}[1s]))'
)

# name -> (text, number of target sentinels, uses errorMetric)
TEMPLATES: dict[str, tuple[str, int, bool]] = {
    "ratio_total": (RATIO_TOTAL, 0, False),
    "latency_total": (LATENCY_TOTAL, 0, False),
    "ratio_errors": (RATIO_ERRORS, 0, False),
    "latency_errors": (LATENCY_ERRORS, 0, True),
    "ratio_error_budget": (RATIO_ERROR_BUDGET, 2, True),
    "latency_error_budget": (LATENCY_ERROR_BUDGET, 2, True),
    "ratio_request_range": (RATIO_REQUEST_RANGE, 0, False),
    "latency_request_range": (LATENCY_REQUEST_RANGE, 0, False),
    "ratio_errors_range": (RATIO_ERRORS_RANGE, 0, True),
    "latency_errors_range": (LATENCY_ERRORS_RANGE, 0, True),
}


def verify_templates() -> list[str]:
    """Parse every template and check its placeholders are locatable.

    Returns the names of the verified templates. Raises TemplateError on the
    first broken template.
    """
    verified: list[str] = []
    for name, (text, sentinels, uses_error_metric) in TEMPLATES.items():
        try:
            tree = parse_expr(text)
        except PromQLParseError as e:
            raise TemplateError(f"template {name!r} does not parse: {e}") from e

        nodes = list(walk(tree))
        selectors = [n for n in nodes if isinstance(n, VectorSelector)]
        names = {s.name for s in selectors}
        if METRIC_PLACEHOLDER not in names:
            raise TemplateError(f"template {name!r} has no {METRIC_PLACEHOLDER!r} selector")
        if uses_error_metric and ERROR_METRIC_PLACEHOLDER not in names:
            raise TemplateError(f"template {name!r} has no {ERROR_METRIC_PLACEHOLDER!r} selector")
        if uses_error_metric:
            tags = {
                m.value
                for s in selectors
                for m in s.label_matchers
                if m.name == MATCHERS_TAG
            }
            if tags != {TOTAL_TAG, ERRORS_TAG}:
                raise TemplateError(f"template {name!r} must tag both legs, found {sorted(tags)}")

        found = sum(1 for n in nodes if isinstance(n, NumberLiteral) and n.val == TARGET_SENTINEL)
        if found != sentinels:
            raise TemplateError(
                f"template {name!r} has {found} target sentinels, expected {sentinels}"
            )
        verified.append(name)
    return verified
