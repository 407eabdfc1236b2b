"""Command-line interface for studying crawl reports."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .cli_config import load_config
from .cli_output import format_report, write_output
from .config import ConfigError, StudyOptions, ensure_exclusive, load_options_from_env
from .loader import LoadError
from .report import generate_report
from .study import study_crawl_async


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="specstudy",
        description="Analyze a crawl report of web specifications and list potential anomalies.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # Study a crawl in the current folder (ed/index.json, tr/index.json)
  specstudy .

  # Restrict the study to some specs (shortname, series, URL or JSON list)
  specstudy ./crawl --spec picture-in-picture https://w3c.github.io/mediasession/

  # Tell broken links from links that only exist in published versions
  specstudy ./crawl/ed --tr ./crawl/tr

  # Only report anomalies introduced since a previous study
  specstudy ./crawl --diff previous-study.json --onlynew --format markdown

  # Markdown report grouped by anomaly kind
  specstudy ./crawl --format markdown --perissue

  # Dependencies report
  specstudy study.json --dep

Argument:
  REPORT may be a crawl report, the folder that contains it (index.json,
  or ed/index.json with an optional sibling tr/index.json), a URL, or a
  study previously produced by this command.
""",
    )

    parser.add_argument(
        "report",
        help="Path/URL to crawl report or study file",
    )
    parser.add_argument(
        "--tr",
        type=str,
        default=None,
        help="Path/URL to crawl report on published specs",
    )
    parser.add_argument(
        "-s",
        "--spec",
        type=str,
        nargs="+",
        default=None,
        help="Restrict analysis to given specs (shortnames, series, URLs, JSON file, or 'all')",
    )
    parser.add_argument(
        "-d",
        "--diff",
        type=str,
        default=None,
        help="Create a diff from some reference study",
    )
    parser.add_argument(
        "--dep",
        action="store_true",
        help="Create a dependencies report",
    )
    parser.add_argument(
        "--onlynew",
        action="store_true",
        help="Only include new anomalies in the diff report",
    )
    parser.add_argument(
        "-f",
        "--format",
        type=str,
        choices=["json", "markdown"],
        default="json",
        help="Output format (default: json)",
    )
    parser.add_argument(
        "--perissue",
        action="store_true",
        help="Group the markdown study by anomaly kind instead of by spec",
    )
    parser.add_argument(
        "--exclude",
        type=str,
        nargs="+",
        default=None,
        help="Regular expressions of link targets never to report (e.g. 'w3\\.org/TR/')",
    )
    parser.add_argument(
        "--orphans",
        action="store_true",
        help="Report definitions that no link in the crawl uses",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Output file (default: stdout)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args(argv)


def _build_options(args: argparse.Namespace) -> StudyOptions:
    defaults = load_options_from_env()
    return StudyOptions(
        exclude_patterns=list(args.exclude) if args.exclude else defaults.exclude_patterns,
        report_orphans=args.orphans or defaults.report_orphans,
        timeout=defaults.timeout,
    )


def _validate_args(args: argparse.Namespace) -> None:
    ensure_exclusive(bool(args.diff), args.dep)
    if args.onlynew and not args.diff:
        raise ConfigError("The --onlynew option requires --diff.")
    if args.perissue and (args.diff or args.dep):
        raise ConfigError("The --perissue option cannot be combined with --diff or --dep.")
    if args.perissue and args.format != "markdown":
        raise ConfigError("The --perissue option requires --format markdown.")


async def _run_async(args: argparse.Namespace) -> int:
    """Main async entry point."""
    _validate_args(args)
    options = _build_options(args)

    logging.info("Studying %s", args.report)
    study = await study_crawl_async(
        args.report,
        published=args.tr,
        include=args.spec,
        options=options,
    )

    if args.diff or args.dep:
        reference = None
        if args.diff:
            logging.info("Loading reference study %s", args.diff)
            reference = await study_crawl_async(
                args.diff, include=args.spec, options=options, allow_empty=True
            )
        report = generate_report(
            study,
            reference=reference,
            dependencies=args.dep,
            only_new=args.onlynew,
        )
        write_output(format_report(report, args.format), args.output)
    else:
        write_output(format_report(study, args.format, per_issue=args.perissue), args.output)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = _parse_args(argv)
    _setup_logging(args.verbose)
    load_config(cwd=Path.cwd(), load_env=load_dotenv)

    try:
        return asyncio.run(_run_async(args))
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return 130
    except (ConfigError, LoadError) as exc:
        logging.error("%s", exc)
        return 2
    except Exception as exc:
        logging.error("Error: %s", exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return 1


if __name__ == "__main__":
    sys.exit(main())
