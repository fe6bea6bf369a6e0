"""Exception hierarchy for slo-promql."""

from __future__ import annotations

from enum import Enum


class FailureReason(str, Enum):
    """Why a query could not be generated."""

    UNSPECIFIED_INDICATOR = "unspecified_indicator"  # caller input
    TEMPLATE_PARSE_ERROR = "template_parse_error"  # defect
    UNSUPPORTED_NODE = "unsupported_node"  # defect


class SLOPromQLError(Exception):
    """Base class for all slo-promql errors."""


class PromQLParseError(SLOPromQLError, ValueError):
    """Raised when PromQL text cannot be parsed."""

    def __init__(self, message: str, position: int = -1, text: str = "") -> None:
        self.message = message
        self.position = position
        self.text = text
        if position >= 0:
            super().__init__(f"parse error at char {position + 1}: {message}")
        else:
            super().__init__(f"parse error: {message}")


class TemplateError(SLOPromQLError):
    """A built-in query template is broken.

    Templates are fixed by this package, so this always indicates a defect
    here rather than bad input.
    """


class UnsupportedNodeError(TemplateError):
    """A template uses an expression the replacer cannot parameterize."""

    def __init__(self, node: object) -> None:
        self.node = node
        super().__init__(f"no support for type {type(node).__name__}")


class QueryGenerationError(SLOPromQLError):
    """Raised by ``QueryResult.unwrap()`` when generation failed."""

    def __init__(self, reason: FailureReason, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        msg = reason.value if not detail else f"{reason.value}: {detail}"
        super().__init__(msg)
