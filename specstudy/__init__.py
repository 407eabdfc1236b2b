"""Cross-reference analysis of crawled web specifications.

This package studies crawl reports of web specifications (terms, anchors,
links and dependencies extracted from each spec) and reports potential
anomalies. It supports:

- Broken links to anchors that no crawled spec defines
- Stale links that only resolve against the published (TR) versions
- Duplicate and orphan definitions
- Diffs between two studies and dependency reports

Example usage:

    from specstudy import study_crawl, diff_studies, dependency_report

    # Study a crawl (folder with ed/index.json and tr/index.json)
    study = study_crawl("./webref")
    for shortname, summary in study.specs.items():
        print(shortname, [a.target for a in summary.anomalies])

    # Only the specs of a given series, with an explicit published crawl
    study = study_crawl("ed/index.json", published="tr/index.json", include=["css-grid"])

    # Compare with a previous study
    previous = study_crawl("previous-study.json")
    diff = diff_studies(previous, study, only_new=True)
"""

from __future__ import annotations

from .analyzer import analyze, classify_link
from .config import ConfigError, StudyOptions, load_options_from_env
from .document import (
    AnomalyKind,
    AnomalyRecord,
    CrawlRecord,
    Definition,
    DefinitionKind,
    Dependency,
    DependencyEntry,
    DependencyReport,
    DiffEntry,
    DiffResult,
    Link,
    SpecSummary,
    StudyResult,
    StudyWarning,
    UnresolvedDependency,
)
from .filters import SpecFilter
from .graph import DefinitionIndex, build_index, resolve_dependencies
from .loader import LoadError, LoadedReports, SchemaError, load_reports, load_reports_async
from .report import dependency_report, diff_studies, generate_report
from .study import aggregate, study_crawl, study_crawl_async, study_records

__all__ = [
    # Data model
    "AnomalyKind",
    "AnomalyRecord",
    "CrawlRecord",
    "Definition",
    "DefinitionKind",
    "Dependency",
    "Link",
    "SpecSummary",
    "StudyResult",
    "StudyWarning",
    "UnresolvedDependency",
    "DiffEntry",
    "DiffResult",
    "DependencyEntry",
    "DependencyReport",
    # Errors
    "ConfigError",
    "LoadError",
    "SchemaError",
    # Loading
    "LoadedReports",
    "load_reports",
    "load_reports_async",
    # Analysis
    "DefinitionIndex",
    "SpecFilter",
    "StudyOptions",
    "aggregate",
    "analyze",
    "build_index",
    "classify_link",
    "load_options_from_env",
    "resolve_dependencies",
    "study_crawl",
    "study_crawl_async",
    "study_records",
    # Reports
    "dependency_report",
    "diff_studies",
    "generate_report",
    # MCP Server
    "mcp",
]


def get_mcp_server():
    """Get the MCP server instance (lazy import to avoid dependency if not needed)."""
    from .mcp_server import mcp

    return mcp


# Lazy import for mcp to avoid requiring fastmcp if not used
def __getattr__(name):
    if name == "mcp":
        from .mcp_server import mcp

        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
