"""schemadrift CLI: compare schema sources and render drift reports."""

import argparse
import logging
import sys
from importlib.metadata import version as get_version, PackageNotFoundError
from pathlib import Path

EXIT_PASSED = 0
EXIT_DRIFT = 1
EXIT_FATAL = 2


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.INFO if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    try:
        schemadrift_version = get_version("schemadrift")
    except PackageNotFoundError:
        schemadrift_version = "dev"

    parser = argparse.ArgumentParser(
        prog="schemadrift",
        description="schemadrift: detect drift between a schema library and a generated API spec"
    )
    parser.add_argument("--version", action="version", version=f"schemadrift {schemadrift_version}")
    # Common arguments
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress all non-error output."
    )
    parent_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log loading and comparison progress."
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # compare command
    compare_parser = subparsers.add_parser(
        "compare",
        help="Compare schema library types with the generated spec",
        parents=[parent_parser]
    )
    compare_parser.add_argument(
        "--library",
        type=Path,
        required=True,
        help="Path to the schema library export (JSON)"
    )
    compare_parser.add_argument(
        "--spec",
        type=Path,
        required=True,
        help="Path to the generated OpenAPI spec (JSON)"
    )
    compare_parser.add_argument(
        "--baseline",
        type=Path,
        default=None,
        help="Previous OpenAPI spec; enables breaking-change detection"
    )
    compare_parser.add_argument(
        "--oasdiff",
        default="oasdiff",
        help="oasdiff executable name or path"
    )
    compare_parser.add_argument(
        "--timeout",
        type=float,
        default=60.0,
        help="Seconds before the breaking-change tool is abandoned"
    )
    compare_parser.add_argument(
        "--policy",
        type=Path,
        default=None,
        help="JSON file overriding rule severities"
    )
    scope = compare_parser.add_mutually_exclusive_group()
    scope.add_argument(
        "--protocol-only",
        action="store_true",
        help="Only compare library schemas with the spec"
    )
    scope.add_argument(
        "--breaking-only",
        action="store_true",
        help="Only run breaking-change detection"
    )
    compare_parser.add_argument(
        "--ci",
        action="store_true",
        help="Print the markdown report to stdout and write it to --report (default: schema-diff.md)"
    )
    compare_parser.add_argument(
        "--report",
        type=Path,
        default=None,
        help="Write the markdown report to this file"
    )
    compare_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON to stdout"
    )

    # render command
    render_parser = subparsers.add_parser(
        "render",
        help="Render a saved JSON result",
        parents=[parent_parser]
    )
    render_parser.add_argument(
        "result_path",
        type=Path,
        help="Path to a result JSON written by 'compare --json'"
    )
    render_parser.add_argument(
        "--format",
        choices=["markdown", "console"],
        default="markdown",
        help="Output format"
    )
    return parser


def _run_compare(args) -> int:
    from schemadrift._internal.breaking import OasdiffDetector
    from schemadrift._internal.report_contract import DEFAULT_REPORT_FILENAME
    from schemadrift.api import load_policy, run_check
    from schemadrift.report import render_console, render_json, render_markdown

    policy = load_policy(args.policy.resolve()) if args.policy else None
    result = run_check(
        args.library.resolve(),
        args.spec.resolve(),
        baseline=args.baseline.resolve() if args.baseline else None,
        detector=OasdiffDetector(binary=args.oasdiff, timeout=args.timeout),
        policy=policy,
        protocol_only=args.protocol_only,
        breaking_only=args.breaking_only,
    )

    report_path = args.report
    if args.ci and report_path is None:
        report_path = Path.cwd() / DEFAULT_REPORT_FILENAME
    if report_path is not None:
        report_path.parent.mkdir(parents=True, exist_ok=True)
        report_path.write_text(render_markdown(result) + "\n", encoding="utf-8")

    if args.json:
        print(render_json(result))
    elif args.ci:
        print(render_markdown(result))
    elif not args.quiet:
        print(render_console(result), file=sys.stderr)
        if report_path is not None:
            print(f"  Report: {report_path}", file=sys.stderr)

    return EXIT_PASSED if result.summary.passed else EXIT_DRIFT


def _run_render(args) -> int:
    from schemadrift._internal.loader import InputError, load_json_document
    from schemadrift.report import render_console, render_markdown, result_from_dict

    data = load_json_document(args.result_path.resolve())
    try:
        result = result_from_dict(data)
    except ValueError as e:
        raise InputError(args.result_path, f"not a drift result: {e}") from e
    rendered = render_markdown(result) if args.format == "markdown" else render_console(result)
    if not args.quiet:
        print(rendered)
    return EXIT_PASSED if result.summary.passed else EXIT_DRIFT


def main(argv=None):
    """Main CLI entry point for schemadrift commands."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(EXIT_FATAL)

    _configure_logging(args.verbose, args.quiet)

    from schemadrift.kernel.tree import SchemaDriftError

    try:
        if args.command == "compare":
            exit_code = _run_compare(args)
        elif args.command == "render":
            exit_code = _run_render(args)
        else:
            parser.print_help()
            exit_code = EXIT_FATAL
    except SchemaDriftError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_FATAL)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(EXIT_FATAL)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
