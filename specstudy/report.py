"""Diff and dependency reports computed from studies."""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Union

from .config import ConfigError, ensure_exclusive
from .document import (
    LINK_ANOMALIES,
    AnomalyRecord,
    DependencyEntry,
    DependencyReport,
    DiffEntry,
    DiffResult,
    StudyResult,
)
from .urls import normalize_url, split_fragment

LOGGER = logging.getLogger(__name__)


def _difference(left: List[AnomalyRecord], right: List[AnomalyRecord]) -> List[AnomalyRecord]:
    """Anomalies of ``left`` missing from ``right``, in ``left`` order, once each."""
    right_keys = {anomaly.key for anomaly in right}
    seen = set()
    result: List[AnomalyRecord] = []
    for anomaly in left:
        if anomaly.key in right_keys or anomaly.key in seen:
            continue
        seen.add(anomaly.key)
        result.append(anomaly)
    return result


def diff_studies(
    reference: StudyResult, candidate: StudyResult, *, only_new: bool = False
) -> DiffResult:
    """Compare two studies spec by spec.

    Candidate specs come first in candidate order, followed by the specs
    that only exist in the reference. With ``only_new`` set, removed
    anomalies are left out so that only regressions remain.
    """
    entries: "OrderedDict[str, DiffEntry]" = OrderedDict()

    for shortname, summary in candidate.specs.items():
        previous = reference.specs.get(shortname)
        if previous is None:
            entries[shortname] = DiffEntry(
                shortname=shortname,
                status="added",
                added=_difference(summary.anomalies, []),
            )
            continue
        added = _difference(summary.anomalies, previous.anomalies)
        removed = [] if only_new else _difference(previous.anomalies, summary.anomalies)
        entries[shortname] = DiffEntry(
            shortname=shortname,
            status="changed" if added or removed else "unchanged",
            added=added,
            removed=removed,
        )

    for shortname, summary in reference.specs.items():
        if shortname in entries:
            continue
        entries[shortname] = DiffEntry(
            shortname=shortname,
            status="removed",
            removed=[] if only_new else _difference(summary.anomalies, []),
        )

    result = DiffResult(entries=entries, only_new=only_new)
    LOGGER.info("Diff: %d of %d spec(s) changed", len(result.changed), len(entries))
    return result


def _owner_table(study: StudyResult) -> Dict[str, str]:
    owners: Dict[str, str] = {}
    for shortname, summary in study.specs.items():
        for url in summary.urls or [summary.crawled]:
            if url:
                owners[normalize_url(url)] = shortname
    return owners


def dependency_report(study: StudyResult) -> DependencyReport:
    """Invert a study into the list of dependents of every spec.

    A spec depends on another when it declares it as a dependency or links
    to it. Incoming link anomalies are counted per anomaly kind for the
    spec whose URL they target.
    """
    entries: "OrderedDict[str, DependencyEntry]" = OrderedDict(
        (shortname, DependencyEntry(shortname=shortname, dependencies=list(summary.dependencies)))
        for shortname, summary in study.specs.items()
    )
    owners = _owner_table(study)

    def _add_dependent(target: str, source: str) -> None:
        entry = entries.get(target)
        if entry is not None and source != target and source not in entry.dependents:
            entry.dependents.append(source)

    for shortname, summary in study.specs.items():
        for dependency in summary.dependencies:
            _add_dependent(dependency, shortname)
        for target, count in summary.link_counts.items():
            _add_dependent(target, shortname)
            entry = entries.get(target)
            if entry is not None:
                entry.link_counts[shortname] = entry.link_counts.get(shortname, 0) + count
        for anomaly in summary.anomalies:
            if anomaly.kind not in LINK_ANOMALIES:
                continue
            target = anomaly.target_spec or owners.get(normalize_url(split_fragment(anomaly.target)[0]))
            entry = entries.get(target) if target else None
            if entry is None:
                continue
            _add_dependent(target, shortname)
            kind = anomaly.kind.value
            entry.anomaly_counts[kind] = entry.anomaly_counts.get(kind, 0) + 1

    warnings = [w for w in study.warnings if w.kind == "unresolved-dependency"]
    return DependencyReport(entries=entries, warnings=warnings)


def generate_report(
    study: StudyResult,
    *,
    reference: Optional[StudyResult] = None,
    dependencies: bool = False,
    only_new: bool = False,
) -> Union[DiffResult, DependencyReport]:
    """Produce either a diff against ``reference`` or a dependency report.

    Raises:
        ConfigError: If both or neither of the two reports are requested.
    """
    ensure_exclusive(reference is not None, dependencies)
    if dependencies:
        return dependency_report(study)
    if reference is None:
        raise ConfigError("A reference study is required to compute a diff.")
    return diff_studies(reference, study, only_new=only_new)
