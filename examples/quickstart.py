"""
slo-promql Quickstart — PromQL for two objectives in a few lines.

Run:
    pip install -e .
    python examples/quickstart.py
"""

from slo_promql import Objective, objective_queries

# ── 1. Describe the objectives ──────────────────────────────────────────

availability = Objective.model_validate({
    "name": "api-availability",
    "description": "99.9% of API requests succeed",
    "target": 0.999,
    "window": "28d",
    "indicator": {"ratio": {
        "total": 'http_requests_total{job="api"}',
        "errors": 'http_requests_total{job="api",code=~"5.."}',
        "grouping": ["handler"],
    }},
})

latency = Objective.model_validate({
    "name": "api-latency",
    "description": "99% of API requests finish within 100ms",
    "target": 0.99,
    "window": "7d",
    "indicator": {"latency": {
        "total": 'http_request_duration_seconds_count{job="api"}',
        "success": 'http_request_duration_seconds_bucket{job="api",le="0.1"}',
    }},
})

# ── 2. Generate the queries ─────────────────────────────────────────────

for objective in (availability, latency):
    queries = objective_queries(objective, timerange="1h")
    print(f"== {objective.name}")
    for name, result in queries.results().items():
        print(f"{name:>14}: {result.unwrap()}")
    print()
