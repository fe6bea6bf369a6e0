"""Objective definitions: what an SLO measures and how strict it is.

Objectives are loaded from YAML (one objective per file)::

    name: api-availability
    target: 0.999
    window: 28d
    indicator:
      ratio:
        total: http_requests_total{job="api"}
        errors: http_requests_total{job="api",code=~"5.."}
        grouping: [handler]
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from slo_promql.promql.ast import LabelMatcher, VectorSelector
from slo_promql.promql.duration import format_duration, parse_duration
from slo_promql.promql.parser import parse_metric_selector


class Metric(BaseModel):
    """A metric name plus the label matchers selecting its series."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="", description="Metric name (Prometheus naming)")
    label_matchers: list[LabelMatcher] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _parse_selector(cls, data: Any) -> Any:
        if isinstance(data, str):
            selector = parse_metric_selector(data)
            return {"name": selector.name, "label_matchers": selector.label_matchers}
        return data

    @classmethod
    def from_selector(cls, selector: str) -> Metric:
        """Build a Metric from a PromQL selector like ``up{job="api"}``."""
        return cls.model_validate(selector)

    def __str__(self) -> str:
        return str(VectorSelector(name=self.name, label_matchers=list(self.label_matchers)))


class RatioIndicator(BaseModel):
    """Errors divided by total requests."""

    model_config = ConfigDict(frozen=True)

    total: Metric
    errors: Metric
    grouping: list[str] = Field(default_factory=list)


class LatencyIndicator(BaseModel):
    """Requests served faster than a threshold divided by all requests.

    ``success`` usually selects a histogram bucket, e.g.
    ``http_request_duration_seconds_bucket{le="0.1"}``.
    """

    model_config = ConfigDict(frozen=True)

    total: Metric
    success: Metric
    grouping: list[str] = Field(default_factory=list)


class Indicator(BaseModel):
    """Exactly one of ``ratio`` or ``latency`` is expected to be set."""

    model_config = ConfigDict(frozen=True)

    ratio: RatioIndicator | None = None
    latency: LatencyIndicator | None = None

    @model_validator(mode="after")
    def _check_exclusive(self) -> Indicator:
        if self.ratio is not None and self.latency is not None:
            raise ValueError("indicator must set either 'ratio' or 'latency', not both")
        return self

    @property
    def has_ratio(self) -> bool:
        return self.ratio is not None and self.ratio.total.name != ""

    @property
    def has_latency(self) -> bool:
        return self.latency is not None and self.latency.total.name != ""


class Objective(BaseModel):
    """A single service level objective."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique objective name")
    description: str = Field(default="")
    labels: dict[str, str] = Field(default_factory=dict)
    indicator: Indicator = Field(default_factory=Indicator)
    target: float = Field(..., ge=0, lt=1, description="Target fraction, e.g. 0.999")
    window: timedelta = Field(default=timedelta(days=28), description="Evaluation window")

    @field_validator("window", mode="before")
    @classmethod
    def _parse_window(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_duration(value)
        return value

    @field_validator("window")
    @classmethod
    def _positive_window(cls, value: timedelta) -> timedelta:
        if value < timedelta(milliseconds=1):
            raise ValueError("window must be a positive duration of at least 1ms")
        return value

    @field_serializer("window", when_used="json")
    def _dump_window(self, value: timedelta) -> str:
        return format_duration(value)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Objective:
        """Load an objective from a YAML file."""
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data)

    def to_yaml(self, path: str | Path) -> None:
        """Save this objective to a YAML file."""
        path = Path(path)
        data = self.model_dump(mode="json", exclude_none=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def load_objectives(directory: str | Path) -> list[Objective]:
    """Load all objectives from YAML files in a directory."""
    directory = Path(directory)
    objectives: list[Objective] = []
    for path in sorted(directory.glob("*.yaml")):
        objectives.append(Objective.from_yaml(path))
    for path in sorted(directory.glob("*.yml")):
        if not path.with_suffix(".yaml").exists():
            objectives.append(Objective.from_yaml(path))
    return objectives
