"""
slo-promql CLI — generate PromQL for objectives defined in YAML.

Usage:
    slo-promql queries objectives/ --range 1h
    slo-promql queries api.yaml --window 5m
    slo-promql check-templates
    slo-promql version
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from slo_promql import __version__
from slo_promql.errors import TemplateError
from slo_promql.objective import Objective, load_objectives
from slo_promql.queries import objective_queries
from slo_promql.templates import verify_templates

logger = logging.getLogger(__name__)


def _load(path: Path) -> List[Objective]:
    if path.is_dir():
        return load_objectives(path)
    return [Objective.from_yaml(path)]


def _queries(parsed: argparse.Namespace) -> int:
    path = Path(parsed.path)
    if not path.exists():
        print(f"No such file or directory: {path}", file=sys.stderr)
        return 1
    try:
        objectives = _load(path)
    except (ValidationError, yaml.YAMLError, OSError) as e:
        print(f"Failed to load objectives from {path}: {e}", file=sys.stderr)
        return 1
    if not objectives:
        print(f"No objectives found in {path}", file=sys.stderr)
        return 1

    try:
        output: List[Dict[str, Any]] = []
        failed = False
        for objective in objectives:
            query_set = objective_queries(objective, parsed.range, parsed.window)
            failed = failed or not query_set.ok
            output.append(query_set.to_dict())
    except ValueError as e:
        print(f"Invalid duration: {e}", file=sys.stderr)
        return 1

    print(json.dumps(output, indent=2))
    return 1 if failed else 0


def cli(args: Optional[List[str]] = None) -> int:
    """Main CLI entry point. Returns exit code."""
    parser = argparse.ArgumentParser(
        prog="slo-promql",
        description="Generate PromQL queries from service level objectives",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    queries_parser = subparsers.add_parser("queries", help="Print queries for objectives")
    queries_parser.add_argument("path", help="Objective YAML file or directory of them")
    queries_parser.add_argument("--range", default="1h", help="Lookback for range queries (default 1h)")
    queries_parser.add_argument("--window", default=None, help="Window for total/errors queries")

    subparsers.add_parser("check-templates", help="Verify the built-in query templates")
    subparsers.add_parser("version", help="Show version")

    parsed = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if parsed.command == "version":
        print(f"slo-promql {__version__}")
        return 0

    if parsed.command == "check-templates":
        try:
            names = verify_templates()
        except TemplateError as e:
            logger.error("Template check failed: %s", e)
            print(f"Template check failed: {e}", file=sys.stderr)
            return 1
        print(f"{len(names)} templates OK")
        return 0

    if parsed.command == "queries":
        return _queries(parsed)

    parser.print_help()
    return 1


def main() -> None:
    sys.exit(cli())


if __name__ == "__main__":
    main()
