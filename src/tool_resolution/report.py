# tool_resolution/report.py
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from tool_resolution.contracts import (
    ResolutionInputError,
    ResolverSettings,
    UnknownToolPolicy,
    UnknownToolReferenceError,
)
from tool_resolution.default_tools import create_default_tool_registry
from tool_resolution.engine import ToolResolutionEngine
from tool_resolution.provenance import format_provenance_as_markdown


def _read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Explain which assessment tools a test-taker is allowed and why.")
    parser.add_argument("assessment", type=Path, help="Path to an assessment JSON document.")
    parser.add_argument("--item", type=Path, default=None, help="Optional item reference JSON with item settings.")
    parser.add_argument(
        "--profile",
        type=Path,
        default=None,
        help="Simulate this personal needs profile JSON instead of the assessment's own profile.",
    )
    parser.add_argument(
        "--null-profile",
        action="store_true",
        help="Simulate a student with no personal needs profile.",
    )
    parser.add_argument(
        "--map",
        action="append",
        default=[],
        metavar="FEATURE=TOOL",
        help="Extra feature -> tool mapping. Repeat for multiple mappings.",
    )
    parser.add_argument("--format", choices=("markdown", "json"), default="markdown")
    parser.add_argument(
        "--strict-mappings",
        action="store_true",
        help="Fail when a feature maps to an unregistered tool instead of logging it.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging on stderr.")
    return parser.parse_args(argv)


def _parse_mapping(raw: str) -> tuple[str, str]:
    feature_id, sep, tool_id = raw.partition("=")
    if not sep or not feature_id.strip() or not tool_id.strip():
        raise ValueError("--map must look like FEATURE=TOOL")
    return feature_id.strip(), tool_id.strip()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        mappings = dict(_parse_mapping(raw) for raw in args.map)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    settings = ResolverSettings(
        unknown_tool_policy=UnknownToolPolicy.RAISE if args.strict_mappings else UnknownToolPolicy.LOG,
        feature_tool_mappings=mappings,
    )
    engine = ToolResolutionEngine(create_default_tool_registry(), settings=settings)

    try:
        assessment = _read_json(args.assessment)
        item_ref = _read_json(args.item) if args.item else None
        if args.null_profile or args.profile:
            profile = None if args.null_profile else _read_json(args.profile)
            result = engine.resolve_with_override(assessment, profile, item_ref)
        else:
            result = engine.resolve_tools_with_provenance(assessment, item_ref)
    except (OSError, json.JSONDecodeError, ResolutionInputError, UnknownToolReferenceError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if args.format == "json":
        payload = result.to_payload()
        print(json.dumps(payload, indent=2))
    else:
        sys.stdout.write(format_provenance_as_markdown(result.provenance))
        sys.stdout.write("\n## Allowed Tools\n\n")
        for tool_id in result.tool_ids:
            sys.stdout.write(f"- {tool_id}\n")
        if not result.tool_ids:
            sys.stdout.write("- none\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
