"""Classify the outbound links and local definitions of a specification."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .config import StudyOptions
from .document import AnomalyKind, AnomalyRecord, CrawlRecord, DefinitionKind, Link
from .graph import DefinitionIndex
from .urls import normalize_url

LOGGER = logging.getLogger(__name__)

# Definition kinds worth reporting when nothing links to them
ORPHAN_KINDS = frozenset({DefinitionKind.dfn, DefinitionKind.idl})


def classify_link(
    shortname: str,
    link: Link,
    current_index: DefinitionIndex,
    published_index: Optional[DefinitionIndex] = None,
) -> Optional[AnomalyRecord]:
    """Return the anomaly for ``link``, or None when it resolves.

    A link that only resolves against the published snapshot is stale;
    anything else that does not resolve is broken. Broken links into
    specifications the crawl does not know carry no ``target_spec``.
    """
    if not link.fragment:
        return None
    if current_index.lookup(link.url, link.fragment) is not None:
        return None

    target_spec = current_index.shortname_for(link.url)
    if published_index is not None and published_index.lookup(link.url, link.fragment) is not None:
        return AnomalyRecord(
            kind=AnomalyKind.stale_link,
            spec=shortname,
            target=link.target,
            target_spec=target_spec or published_index.shortname_for(link.url),
            published_only=target_spec is None,
        )
    return AnomalyRecord(
        kind=AnomalyKind.broken_link,
        spec=shortname,
        target=link.target,
        target_spec=target_spec,
    )


def collect_references(
    records: Sequence[CrawlRecord], index: DefinitionIndex
) -> Set[Tuple[str, str]]:
    """Return every ``(canonical URL, fragment)`` pair some link points to."""
    referenced: Set[Tuple[str, str]] = set()
    for record in records:
        for link in record.links:
            if not link.fragment:
                continue
            canonical = index.resolve_url(link.url)
            if canonical:
                referenced.add((canonical, link.fragment))
    return referenced


def analyze(
    record: CrawlRecord,
    current_index: DefinitionIndex,
    published_index: Optional[DefinitionIndex] = None,
    *,
    options: Optional[StudyOptions] = None,
    referenced: Optional[Set[Tuple[str, str]]] = None,
) -> List[AnomalyRecord]:
    """Return the anomalies of one specification.

    Link anomalies come first, in link declaration order, each literal
    target at most once. Duplicate definitions follow, then orphan
    definitions when ``options.report_orphans`` is set and ``referenced``
    (see :func:`collect_references`) is given.
    """
    options = options or StudyOptions()
    anomalies: List[AnomalyRecord] = []

    seen: Set[str] = set()
    for link in record.links:
        if not link.fragment or link.target in seen:
            continue
        seen.add(link.target)
        if options.is_excluded(link.target):
            LOGGER.debug("%s: skipping excluded link %s", record.shortname, link.target)
            continue
        anomaly = classify_link(record.shortname, link, current_index, published_index)
        if anomaly is not None:
            anomalies.append(anomaly)

    reported: Set[str] = set()
    for duplicate in current_index.duplicates_of(record.shortname):
        if duplicate.fragment in reported:
            continue
        reported.add(duplicate.fragment)
        anomalies.append(
            AnomalyRecord(
                kind=AnomalyKind.duplicate_definition,
                spec=record.shortname,
                target=duplicate.fragment,
                shadowed=duplicate.shadowed,
            )
        )

    if options.report_orphans and referenced is not None:
        canonical = normalize_url(record.url)
        orphans: Set[str] = set()
        for definition in record.definitions:
            if definition.kind not in ORPHAN_KINDS or definition.fragment in orphans:
                continue
            entry = current_index.entries.get((canonical, definition.fragment))
            if entry is None or entry.shortname != record.shortname:
                continue
            if (canonical, definition.fragment) not in referenced:
                orphans.add(definition.fragment)
                anomalies.append(
                    AnomalyRecord(
                        kind=AnomalyKind.orphan_definition,
                        spec=record.shortname,
                        target=definition.fragment,
                    )
                )

    return anomalies


def count_links(record: CrawlRecord, index: DefinitionIndex) -> Dict[str, int]:
    """Count the links of ``record`` per target specification (self excluded)."""
    counts: Dict[str, int] = {}
    for link in record.links:
        target = index.shortname_for(link.url)
        if target and target != record.shortname:
            counts[target] = counts.get(target, 0) + 1
    return counts
