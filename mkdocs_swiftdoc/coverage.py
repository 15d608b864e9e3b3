#!/usr/bin/env python3
"""
Report documentation coverage of a SourceKitten JSON dump.

Usage:
    python -m mkdocs_swiftdoc.coverage docs.json
    python -m mkdocs_swiftdoc.coverage docs.json --min-acl internal
    python -m mkdocs_swiftdoc.coverage docs.json --source-directory Sources --fail-under 80
"""

import argparse
import os
import sys

from .declaration import AccessControlLevel
from .sourcekitten import SourceKittenError, parse


def main(argv=None):
    p = argparse.ArgumentParser(description="Report documentation coverage of SourceKitten output")
    p.add_argument("path", help="JSON file written by `sourcekitten doc`")
    p.add_argument(
        "--min-acl",
        default="public",
        choices=[lvl.name.lower() for lvl in AccessControlLevel if lvl.name != "UNKNOWN"],
        help="Minimum access level to document (default: public)",
    )
    p.add_argument(
        "--skip-undocumented", action="store_true", help="Leave undocumented symbols out"
    )
    p.add_argument("--exclude", nargs="+", default=[], help="Source files to leave out")
    p.add_argument(
        "--source-directory",
        default="",
        help="Only count undocumented symbols of files under this directory",
    )
    p.add_argument(
        "--fail-under", type=int, default=0, help="Exit with status 1 below this coverage"
    )
    args = p.parse_args(argv)

    try:
        with open(args.path, "r", encoding="utf-8") as f:
            output = f.read()
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    source_directory = os.path.abspath(args.source_directory) if args.source_directory else ""
    try:
        result = parse(
            output,
            min_acl=AccessControlLevel.from_name(args.min_acl),
            skip_undocumented=args.skip_undocumented,
            excluded_files=[os.path.abspath(p) for p in args.exclude],
            source_directory=source_directory,
        )
    except SourceKittenError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(f"{result.coverage}% documentation coverage")
    for token in result.undocumented:
        print(f"{token.filepath}:{token.doc_line or 0}: {token.name}")

    if result.coverage < args.fail_under:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
