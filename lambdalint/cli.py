#!/usr/bin/env python3
"""
Command-line interface for lambdalint - find lambdas that could be method references.
"""

import argparse
import json
import logging
import sys
import zipfile
from pathlib import Path

from .classfile import ClassFileVersion


logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )
    logger.debug("Logging initialized (debug=%s)", debug)


def analyze_command(args) -> int:
    """Analyze class files and print diagnostics."""
    from .config import AnalysisConfig
    from .driver import analyze_paths
    from .report import format_json, format_text

    for path in args.paths:
        if not Path(path).exists():
            print(f"Error: File not found: {path}", file=sys.stderr)
            return 2

    try:
        config = AnalysisConfig.from_args(args)
        result = analyze_paths(config)
    except (ValueError, zipfile.BadZipFile) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if config.output_format == "json":
        print(format_json(result.bugs))
    elif result.bugs:
        print(format_text(result.bugs))

    if not args.quiet:
        print(f"Analyzed {result.classes} class(es), skipped {result.skipped}, "
              f"found {len(result.bugs)} issue(s)", file=sys.stderr)

    if config.fail_on_findings and result.bugs:
        return 1
    return 0


def bootstrap_command(args) -> int:
    """Dump the BootstrapMethods table of a class file as JSON."""
    from .bootstrap import BootstrapMethods
    from .bytereader import DecodeError
    from .classreader import read_class_file
    from .constants import ResolutionError

    path = Path(args.file)
    if not path.exists():
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        return 2

    try:
        info = read_class_file(path)
        data = info.get_attribute(BootstrapMethods.ATTRIBUTE_NAME)
        entries = []
        if data is not None:
            pool = info.constant_pool
            table = BootstrapMethods(data)
            for index, entry in enumerate(table.entries()):
                item = {"index": index, "method_ref": entry.method_ref,
                        "arguments": list(entry.arguments), "method_handle": None}
                try:
                    handle = table.find_method_handle(index, pool)
                except ResolutionError as e:
                    item["error"] = str(e)
                else:
                    if handle is not None:
                        ref = handle.reference
                        item["method_handle"] = {
                            "kind": handle.kind.name,
                            "class": ref.class_name,
                            "name": ref.name,
                            "descriptor": ref.descriptor,
                        }
                entries.append(item)
    except DecodeError as e:
        print(f"Error reading {args.file}: {e}", file=sys.stderr)
        return 1

    print(json.dumps({"class": info.dotted_name, "bootstrap_methods": entries}, indent=2))
    return 0


def main(argv=None) -> int:
    """Main entry point for lambdalint CLI."""
    parser = argparse.ArgumentParser(
        prog="lambdalint",
        description="Find lambdas in compiled Java classes that could be method references",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze class files, directories or jars",
    )
    analyze_parser.add_argument(
        "paths",
        nargs="+",
        help="Class files, directories or .jar/.zip archives",
    )
    analyze_parser.add_argument(
        "-j", "--jobs",
        type=int,
        default=1,
        help="Number of worker processes, 0 for one per CPU (default: 1)",
    )
    analyze_parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    analyze_parser.add_argument(
        "--min-major",
        type=int,
        default=ClassFileVersion.JAVA_8[0],
        help="Skip classes with an older major version (default: 52)",
    )
    analyze_parser.add_argument(
        "--fail-on-findings",
        action="store_true",
        help="Exit with status 1 when any issue is found",
    )
    analyze_parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress summary output",
    )
    analyze_parser.set_defaults(func=analyze_command)

    bootstrap_parser = subparsers.add_parser(
        "bootstrap",
        help="Dump the BootstrapMethods table of a class file as JSON",
    )
    bootstrap_parser.add_argument("file", help="Class file to inspect")
    bootstrap_parser.set_defaults(func=bootstrap_command)

    args = parser.parse_args(argv)
    setup_logging(args.debug)

    if args.command is None:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
