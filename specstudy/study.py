"""Study a crawl: load, index, analyze and aggregate.

Example usage:

    from specstudy import study_crawl

    study = study_crawl("./webref", include=["css-grid-2"])
    for shortname, summary in study.specs.items():
        for anomaly in summary.anomalies:
            print(shortname, anomaly.kind.value, anomaly.target)
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .analyzer import analyze, collect_references, count_links
from .config import StudyOptions
from .document import AnomalyRecord, CrawlRecord, SpecSummary, StudyResult, StudyWarning
from .filters import SpecFilter
from .graph import build_index, resolve_dependencies
from .loader import load_reports_async

LOGGER = logging.getLogger(__name__)


def aggregate(
    records: Sequence[CrawlRecord],
    per_spec_anomalies: Mapping[str, List[AnomalyRecord]],
    *,
    include: Optional[Iterable[str]] = None,
    dependencies: Optional[Mapping[str, List[str]]] = None,
    link_counts: Optional[Mapping[str, Dict[str, int]]] = None,
    warnings: Optional[List[StudyWarning]] = None,
    title: str = "Crawl study",
    date: Optional[str] = None,
) -> StudyResult:
    """Assemble per-spec anomalies into a study, in record order.

    Only records present in ``per_spec_anomalies`` are kept, and when
    ``include`` is given only those whose shortname it lists, so applying
    the same allow-list again changes nothing.
    """
    allowed = set(include) if include is not None else None
    dependencies = dependencies or {}
    link_counts = link_counts or {}

    specs: "OrderedDict[str, SpecSummary]" = OrderedDict()
    for record in records:
        if record.shortname not in per_spec_anomalies:
            continue
        if allowed is not None and record.shortname not in allowed:
            continue
        specs[record.shortname] = SpecSummary(
            shortname=record.shortname,
            title=record.title,
            repo=record.repository,
            crawled=record.url,
            series=record.series,
            urls=record.urls,
            anomalies=list(per_spec_anomalies[record.shortname]),
            dependencies=list(dependencies.get(record.shortname, [])),
            link_counts=dict(link_counts.get(record.shortname, {})),
        )

    return StudyResult(specs=specs, warnings=list(warnings or []), title=title, date=date)


def filter_study(
    study: StudyResult, spec_filter: Optional[SpecFilter], *, allow_empty: bool = False
) -> StudyResult:
    """Restrict a previously produced study to the specs ``spec_filter`` selects."""
    if spec_filter is None:
        return study
    selected = set(spec_filter.select(list(study.specs.values()), allow_empty=allow_empty))
    specs: "OrderedDict[str, SpecSummary]" = OrderedDict(
        (name, summary) for name, summary in study.specs.items() if name in selected
    )
    warnings = [w for w in study.warnings if w.spec is None or w.spec in selected]
    return StudyResult(specs=specs, warnings=warnings, title=study.title, date=study.date)


def study_records(
    records: Sequence[CrawlRecord],
    published: Optional[Sequence[CrawlRecord]] = None,
    *,
    include: Optional[Iterable[str]] = None,
    options: Optional[StudyOptions] = None,
    warnings: Optional[List[StudyWarning]] = None,
    title: str = "Crawl study",
    date: Optional[str] = None,
) -> StudyResult:
    """Analyze already loaded records.

    Indexes always cover every record so that links resolve against the
    whole crawl; ``include`` (shortnames) only restricts which specs are
    analyzed and reported. ``title`` and ``date`` describe the crawl and
    are copied as is, so the same records always give the same study.
    """
    options = options or StudyOptions()
    current_index = build_index(records)
    published_index = build_index(published) if published is not None else None
    graph = resolve_dependencies(records, current_index)
    referenced = collect_references(records, current_index) if options.report_orphans else None

    allowed = set(include) if include is not None else None
    anomalies: Dict[str, List[AnomalyRecord]] = {}
    counts: Dict[str, Dict[str, int]] = {}
    for record in records:
        if allowed is not None and record.shortname not in allowed:
            continue
        anomalies[record.shortname] = analyze(
            record,
            current_index,
            published_index,
            options=options,
            referenced=referenced,
        )
        counts[record.shortname] = count_links(record, current_index)

    study_warnings = list(warnings or [])
    study_warnings.extend(
        w for w in graph.warnings if allowed is None or w.spec in allowed
    )
    study = aggregate(
        records,
        anomalies,
        include=allowed,
        dependencies=graph.dependencies,
        link_counts=counts,
        warnings=study_warnings,
        title=title,
        date=date,
    )
    LOGGER.info(
        "Studied %d spec(s): %d anomalies",
        len(study.specs),
        sum(len(summary.anomalies) for summary in study.specs.values()),
    )
    return study


async def study_crawl_async(
    report: str,
    *,
    published: Optional[str] = None,
    include: Optional[Iterable[str]] = None,
    options: Optional[StudyOptions] = None,
    allow_empty: bool = False,
) -> StudyResult:
    """Study the crawl report at ``report``.

    Args:
        report: Path or URL of the crawl report, of the folder that holds
            it, or of a previously produced study.
        published: Optional path or URL of a crawl of published versions,
            used to tell stale links from broken ones.
        include: Spec filter values (shortnames, series, URLs, JSON files).
        options: Analysis options.
        allow_empty: Return an empty study instead of failing when the spec
            filter matches nothing, as needed for a diff reference.

    Raises:
        LoadError: If a report cannot be loaded.
        ConfigError: If the spec filter matches nothing and ``allow_empty``
            is not set.
    """
    options = options or StudyOptions()
    spec_filter = SpecFilter.from_values(include)
    loaded = await load_reports_async(report, published, timeout=options.timeout)

    if loaded.study is not None:
        return filter_study(loaded.study, spec_filter, allow_empty=allow_empty)

    selected = (
        spec_filter.select(loaded.current, allow_empty=allow_empty) if spec_filter else None
    )
    return study_records(
        loaded.current,
        loaded.published,
        include=selected,
        options=options,
        warnings=[w for w in loaded.warnings if selected is None or w.spec in selected],
        title=loaded.title or "Crawl study",
        date=loaded.date,
    )


def study_crawl(
    report: str,
    *,
    published: Optional[str] = None,
    include: Optional[Iterable[str]] = None,
    options: Optional[StudyOptions] = None,
) -> StudyResult:
    """Synchronous wrapper for :func:`study_crawl_async`."""
    return asyncio.run(
        study_crawl_async(report, published=published, include=include, options=options)
    )
