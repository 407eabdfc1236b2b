"""MCP Server exposing crawl studies.

Provides tools for:
- Studying a crawl report and listing anomalies per specification
- Diffing a crawl (or study) against a reference study
- Building a dependencies report

Supports both STDIO and HTTP transports.

Usage:
    # STDIO (for desktop MCP clients)
    python -m specstudy.mcp_server

    # HTTP (for remote access)
    python -m specstudy.mcp_server --transport http --port 8000

Environment Variables:
    SPECSTUDY_EXCLUDE_LINKS: Comma-separated link exclusion patterns
    SPECSTUDY_REPORT_ORPHANS: Report definitions nobody links to (1/true)
    SPECSTUDY_TIMEOUT: HTTP timeout for remote reports, in seconds
"""

from __future__ import annotations

import argparse
import json
import logging
from typing import List, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP

from .cli_output import format_report
from .config import ConfigError, StudyOptions, load_options_from_env
from .loader import LoadError
from .report import dependency_report, diff_studies

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
LOGGER = logging.getLogger(__name__)

# Load .env before reading environment variables
load_dotenv()

mcp = FastMCP(
    name="Spec Crawl Study",
    instructions="""
    Analyzes crawl reports of web specifications.

    Tools:
       - study: list broken links, stale links and duplicate definitions per spec
       - diff: anomalies added (and removed) since a reference study
       - dependencies: which specs depend on which, with incoming anomalies

    Reports may be local paths or URLs, crawl reports or previously produced
    study files. Output is JSON (default) or markdown.
    """,
)


def _options(exclude: Optional[List[str]], orphans: bool) -> StudyOptions:
    defaults = load_options_from_env()
    return StudyOptions(
        exclude_patterns=list(exclude) if exclude else defaults.exclude_patterns,
        report_orphans=orphans or defaults.report_orphans,
        timeout=defaults.timeout,
    )


def _error(message: str, report: str) -> str:
    LOGGER.error(message)
    return json.dumps({"error": message, "report": report}, ensure_ascii=False)


def _output_format(value: str) -> str:
    return "markdown" if (value or "").lower() == "markdown" else "json"


@mcp.tool
async def study(
    report: str,
    published: Optional[str] = None,
    specs: Optional[List[str]] = None,
    exclude: Optional[List[str]] = None,
    orphans: bool = False,
    output_format: str = "json",
    per_issue: bool = False,
):
    """
    Study a crawl report and list potential anomalies per specification.

    Args:
        report: Path/URL of the crawl report, of its folder, or of a study file
        published: Optional path/URL of the crawl report on published (TR) specs
        specs: Restrict to these specs (shortnames, series shortnames, URLs, JSON files)
        exclude: Regular expressions of link targets never to report
        orphans: Also report definitions that no link uses (default: false)
        output_format: "json" (default) or "markdown"
        per_issue: Group markdown output by anomaly kind instead of by spec

    Returns:
        The study in the requested format, or a JSON error object.
    """
    from . import study_crawl_async

    LOGGER.info("Studying %s", report)
    try:
        result = await study_crawl_async(
            report,
            published=published,
            include=specs,
            options=_options(exclude, orphans),
        )
    except (LoadError, ConfigError) as exc:
        return _error(str(exc), report)
    return format_report(result, _output_format(output_format), per_issue=per_issue)


@mcp.tool
async def diff(
    report: str,
    reference: str,
    only_new: bool = False,
    specs: Optional[List[str]] = None,
    exclude: Optional[List[str]] = None,
    output_format: str = "json",
):
    """
    Compare a crawl report (or study) with a reference study.

    Args:
        report: Path/URL of the crawl report or study to check
        reference: Path/URL of the reference study (or crawl report)
        only_new: Only list anomalies introduced since the reference (default: false)
        specs: Restrict to these specs
        exclude: Regular expressions of link targets never to report
        output_format: "json" (default) or "markdown"
    """
    from . import study_crawl_async

    options = _options(exclude, False)
    LOGGER.info("Diffing %s against %s", report, reference)
    try:
        candidate = await study_crawl_async(report, include=specs, options=options)
        previous = await study_crawl_async(
            reference, include=specs, options=options, allow_empty=True
        )
    except (LoadError, ConfigError) as exc:
        return _error(str(exc), report)
    return format_report(
        diff_studies(previous, candidate, only_new=only_new),
        _output_format(output_format),
    )


@mcp.tool
async def dependencies(
    report: str,
    specs: Optional[List[str]] = None,
    output_format: str = "json",
):
    """
    Build a dependencies report: who depends on each spec and through which anomalies.

    Args:
        report: Path/URL of the crawl report or study
        specs: Restrict to these specs
        output_format: "json" (default) or "markdown"
    """
    from . import study_crawl_async

    LOGGER.info("Building dependencies report for %s", report)
    try:
        result = await study_crawl_async(report, include=specs, options=_options(None, False))
    except (LoadError, ConfigError) as exc:
        return _error(str(exc), report)
    return format_report(dependency_report(result), _output_format(output_format))


def main():
    """CLI entry point for running the MCP server."""
    parser = argparse.ArgumentParser(
        description="Run the crawl study MCP server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # STDIO transport (default)
    python -m specstudy.mcp_server

    # HTTP transport (for remote access)
    python -m specstudy.mcp_server --transport http --port 8000
""",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to for HTTP transport (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to for HTTP transport (default: 8000)",
    )

    args = parser.parse_args()

    if args.transport == "http":
        LOGGER.info("Starting MCP server on http://%s:%d/mcp", args.host, args.port)
        mcp.run(transport="http", host=args.host, port=args.port)
    else:
        LOGGER.info("Starting MCP server with STDIO transport")
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
