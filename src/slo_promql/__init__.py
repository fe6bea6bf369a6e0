"""SLO PromQL — turn service level objectives into Prometheus queries.

slo-promql takes a declarative objective (what to measure, how strict,
over which window) and produces ready-to-run PromQL for dashboards and
alerting, so nobody has to hand-write the same four queries per service.

Core concepts
-------------
* **Objective**: a single SLO made of an indicator, a ``target`` fraction such as
  ``0.999`` and an evaluation ``window`` such as ``28d``.

* **Indicator**: either a *ratio* (errors / total requests) or a
  *latency* indicator (requests within a threshold / total requests).

* **Templates**: fixed PromQL skeletons in ``slo_promql.templates``.
  Each generator parses one, rewrites its placeholders with the
  objective's metric names, matchers, grouping, window and target, and
  renders the result.

Quick start::

    from slo_promql import Objective, query_total

    objective = Objective.model_validate({
        "name": "api",
        "target": 0.999,
        "window": "28d",
        "indicator": {"ratio": {
            "total": 'http_requests_total{job="api"}',
            "errors": 'http_requests_total{job="api",code=~"5.."}',
        }},
    })
    print(query_total(objective, "5m").unwrap())
"""

from slo_promql.errors import (
    FailureReason,
    PromQLParseError,
    QueryGenerationError,
    SLOPromQLError,
    TemplateError,
    UnsupportedNodeError,
)
from slo_promql.objective import (
    Indicator,
    LatencyIndicator,
    Metric,
    Objective,
    RatioIndicator,
    load_objectives,
)
from slo_promql.queries import (
    QueryResult,
    QuerySet,
    errors_range,
    objective_queries,
    query_error_budget,
    query_errors,
    query_total,
    request_range,
)
from slo_promql.replacer import ObjectiveReplacer, grouping_labels
from slo_promql.templates import verify_templates

__all__ = [
    "FailureReason",
    "PromQLParseError",
    "QueryGenerationError",
    "SLOPromQLError",
    "TemplateError",
    "UnsupportedNodeError",
    "Indicator",
    "LatencyIndicator",
    "Metric",
    "Objective",
    "RatioIndicator",
    "load_objectives",
    "QueryResult",
    "QuerySet",
    "errors_range",
    "objective_queries",
    "query_error_budget",
    "query_errors",
    "query_total",
    "request_range",
    "ObjectiveReplacer",
    "grouping_labels",
    "verify_templates",
]

__version__ = "0.1.0"
