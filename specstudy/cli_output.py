"""Output and formatting helpers for CLI commands."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from .document import (
    AnomalyKind,
    AnomalyRecord,
    DependencyReport,
    DiffResult,
    StudyResult,
)

Report = Union[StudyResult, DiffResult, DependencyReport]

ANOMALY_TITLES: Dict[AnomalyKind, str] = {
    AnomalyKind.broken_link: "Broken links",
    AnomalyKind.stale_link: "Links only valid in the published version",
    AnomalyKind.duplicate_definition: "Duplicate definitions",
    AnomalyKind.orphan_definition: "Definitions nobody links to",
}


def _describe(anomaly: AnomalyRecord) -> str:
    if anomaly.kind == AnomalyKind.broken_link and anomaly.unknown_spec:
        return f"{anomaly.target} (unknown specification)"
    if anomaly.kind == AnomalyKind.duplicate_definition and anomaly.shadowed:
        if anomaly.shadowed != anomaly.spec:
            return f"#{anomaly.target} (shadows {anomaly.shadowed})"
        return f"#{anomaly.target}"
    if anomaly.kind == AnomalyKind.orphan_definition:
        return f"#{anomaly.target}"
    return anomaly.target


def _anomaly_lines(anomalies: List[AnomalyRecord], heading: str) -> List[str]:
    lines: List[str] = []
    for kind in AnomalyKind:
        selected = [a for a in anomalies if a.kind == kind]
        if not selected:
            continue
        lines.append(f"{heading} {ANOMALY_TITLES[kind]}")
        lines.extend(f"* {_describe(anomaly)}" for anomaly in selected)
        lines.append("")
    return lines


def format_study_markdown(study: StudyResult) -> str:
    """Format a study as markdown, one section per spec with anomalies."""
    lines = [f"# {study.title}", ""]
    if study.date:
        lines.extend([f"_Generated: {study.date}_", ""])

    clean = 0
    for summary in study.specs.values():
        if not summary.anomalies:
            clean += 1
            continue
        lines.append(f"## [{summary.title}]({summary.crawled})")
        if summary.repo:
            lines.append(f"Repository: {summary.repo}")
        lines.append("")
        lines.extend(_anomaly_lines(summary.anomalies, "###"))

    lines.append(f"_{clean} of {len(study.specs)} specs without anomalies_")
    if study.warnings:
        lines.extend(["", "## Warnings", ""])
        lines.extend(f"* {warning.message}" for warning in study.warnings)
    return "\n".join(lines)


def format_study_markdown_per_issue(study: StudyResult) -> str:
    """Format a study as markdown, one section per anomaly kind."""
    lines = [f"# {study.title}", ""]
    if study.date:
        lines.extend([f"_Generated: {study.date}_", ""])

    found = False
    for kind in AnomalyKind:
        affected = [summary for summary in study.specs.values() if summary.of_kind(kind)]
        if not affected:
            continue
        found = True
        total = sum(len(summary.of_kind(kind)) for summary in affected)
        lines.append(f"## {ANOMALY_TITLES[kind]}")
        lines.append("")
        lines.append(f"_{total} in {len(affected)} specs_")
        lines.append("")
        for summary in affected:
            lines.append(f"### [{summary.title}]({summary.crawled})")
            lines.extend(f"* {_describe(anomaly)}" for anomaly in summary.of_kind(kind))
            lines.append("")

    if not found:
        lines.extend(["No anomaly found.", ""])
    if study.warnings:
        lines.extend(["## Warnings", ""])
        lines.extend(f"* {warning.message}" for warning in study.warnings)
    return "\n".join(lines).rstrip() + "\n"


def format_diff_markdown(diff: DiffResult) -> str:
    """Format a diff as markdown, listing only specs that changed."""
    lines = ["# New anomalies" if diff.only_new else "# Anomaly changes", ""]
    changed = diff.changed
    if not changed:
        lines.append("No change.")
        return "\n".join(lines)

    for entry in changed:
        lines.append(f"## {entry.shortname} ({entry.status})")
        lines.append("")
        if entry.added:
            lines.extend(_anomaly_lines(entry.added, "### New:"))
        if entry.removed:
            lines.extend(_anomaly_lines(entry.removed, "### Fixed:"))
    return "\n".join(lines).rstrip() + "\n"


def format_dependencies_markdown(report: DependencyReport) -> str:
    """Format a dependency report as markdown."""
    lines = ["# Dependencies", ""]
    for entry in report.entries.values():
        lines.append(f"## {entry.shortname}")
        lines.append("")
        if entry.dependencies:
            lines.append("Depends on: " + ", ".join(entry.dependencies))
        if entry.dependents:
            parts = []
            for dependent in entry.dependents:
                links = entry.link_counts.get(dependent)
                parts.append(f"{dependent} ({links} links)" if links else dependent)
            lines.append("Used by: " + ", ".join(parts))
        else:
            lines.append("Used by: none")
        if entry.anomaly_counts:
            counts = ", ".join(f"{kind}: {count}" for kind, count in entry.anomaly_counts.items())
            lines.append(f"Incoming anomalies: {counts}")
        lines.append("")

    if report.warnings:
        lines.extend(["## Unresolved dependencies", ""])
        lines.extend(f"* {warning.message}" for warning in report.warnings)
    return "\n".join(lines).rstrip() + "\n"


def format_report(report: Report, output_format: str = "json", *, per_issue: bool = False) -> str:
    """Render any report as JSON or markdown.

    ``per_issue`` groups a study's markdown by anomaly kind instead of by spec.
    """
    if output_format == "markdown":
        if isinstance(report, DiffResult):
            return format_diff_markdown(report)
        if isinstance(report, DependencyReport):
            return format_dependencies_markdown(report)
        if per_issue:
            return format_study_markdown_per_issue(report)
        return format_study_markdown(report)
    return json.dumps(report.to_dict(), indent=2, ensure_ascii=False)


def write_output(text: str, output: Optional[str]) -> None:
    """Write ``text`` to ``output``, or to stdout when no output is given."""
    if output is None:
        print(text)
        return
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    logging.info("Wrote %s", path)
