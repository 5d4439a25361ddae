"""Command line interface.

Usage::

  python main.py chapter config.yaml discussion --doc-type pdf -o out/discussion.pdf
  python main.py thesis config.yaml -o out/full_thesis.pdf
  python main.py locate config.yaml intro
  python main.py show-config config.yaml
  python main.py write-config config.yaml resolved.yaml
  python main.py clean knitted_tex
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .core.errors import ThesisBuildError
from .core.storage import remove_temp_files
from .pipeline.build import DOC_TYPES, compile_chapter, compile_thesis
from .pipeline.locator import locate_chapter
from .pipeline.settings_resolver import SettingsResolver

LOG = logging.getLogger(__name__)


def _cmd_chapter(args: argparse.Namespace) -> int:
    resolver = SettingsResolver(args.config, policy=args.policy)
    out = compile_chapter(resolver, args.chapter, doc_type=args.doc_type, out_path=args.output)
    print(out)
    return 0


def _cmd_thesis(args: argparse.Namespace) -> int:
    resolver = SettingsResolver(args.config, policy=args.policy)
    out = compile_thesis(resolver, out_path=args.output)
    print(out)
    return 0


def _cmd_locate(args: argparse.Namespace) -> int:
    resolver = SettingsResolver(args.config, policy=args.policy)
    print(locate_chapter(args.chapter, resolver.repo))
    return 0


def _cmd_show_config(args: argparse.Namespace) -> int:
    resolver = SettingsResolver(args.config, policy=args.policy)
    sys.stdout.write(resolver.describe())
    return 0


def _cmd_write_config(args: argparse.Namespace) -> int:
    resolver = SettingsResolver(args.config, policy=args.policy)
    print(f"Config written to {resolver.write_to_file(args.output)}")
    return 0


def _cmd_clean(args: argparse.Namespace) -> int:
    removed = remove_temp_files(args.directory)
    print(f"Removed {len(removed)} file(s)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="thesis-build", description="Build thesis chapters from a YAML settings file.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for INFO, -vv for DEBUG")
    sub = parser.add_subparsers(dest="command", required=True)

    def with_config(p: argparse.ArgumentParser) -> argparse.ArgumentParser:
        p.add_argument("config", help="Path to the YAML settings file")
        p.add_argument(
            "--policy",
            choices=("keep", "error"),
            default=None,
            help="How to treat {placeholders} missing from the dirs section",
        )
        return p

    p = with_config(sub.add_parser("chapter", help="Compile one chapter"))
    p.add_argument("chapter", help="Chapter name, matched to <name>.Rmd in the repository")
    p.add_argument("--doc-type", choices=DOC_TYPES, default="pdf")
    p.add_argument("-o", "--output", default=None, help="Where to save the compiled document")
    p.set_defaults(func=_cmd_chapter)

    p = with_config(sub.add_parser("thesis", help="Compile the full thesis"))
    p.add_argument("-o", "--output", default=None)
    p.set_defaults(func=_cmd_thesis)

    p = with_config(sub.add_parser("locate", help="Print the source file of a chapter"))
    p.add_argument("chapter")
    p.set_defaults(func=_cmd_locate)

    p = with_config(sub.add_parser("show-config", help="Print the resolved settings"))
    p.set_defaults(func=_cmd_show_config)

    p = with_config(sub.add_parser("write-config", help="Write the resolved settings to a file"))
    p.add_argument("output")
    p.set_defaults(func=_cmd_write_config)

    p = sub.add_parser("clean", help="Remove LaTeX by-products from a directory")
    p.add_argument("directory")
    p.set_defaults(func=_cmd_clean)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        return args.func(args)
    except ThesisBuildError as exc:
        LOG.debug("Command %s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1


__all__ = ["build_parser", "main"]
