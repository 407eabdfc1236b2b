"""Cross-reference graph: where every anchor of the crawl is defined."""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .document import CrawlRecord, DefinitionKind, StudyWarning, UnresolvedDependency
from .urls import normalize_url

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DefinitionEntry:
    """Specification that defines an anchor, and what the anchor is."""

    shortname: str
    kind: DefinitionKind
    name: str = ""


@dataclass(frozen=True, slots=True)
class DuplicateRegistration:
    """An anchor registered again; ``shortname`` defines it last."""

    shortname: str
    fragment: str
    shadowed: str


@dataclass
class DefinitionIndex:
    """Global index of anchors keyed by ``(canonical spec URL, fragment)``.

    ``aliases`` maps every normalized URL under which a specification is
    known to its canonical URL, ``owners`` maps canonical URLs to
    shortnames. The index is read-only once built.
    """

    entries: Dict[Tuple[str, str], DefinitionEntry] = field(default_factory=dict)
    aliases: Dict[str, str] = field(default_factory=dict)
    owners: Dict[str, str] = field(default_factory=dict)
    duplicates: List[DuplicateRegistration] = field(default_factory=list)

    def resolve_url(self, url: str) -> Optional[str]:
        """Return the canonical URL of the crawled spec at ``url``, if any."""
        return self.aliases.get(normalize_url(url))

    def shortname_for(self, url: str) -> Optional[str]:
        canonical = self.resolve_url(url)
        return self.owners.get(canonical) if canonical else None

    def lookup(self, url: str, fragment: str) -> Optional[DefinitionEntry]:
        canonical = self.resolve_url(url)
        if canonical is None:
            return None
        return self.entries.get((canonical, fragment))

    def duplicates_of(self, shortname: str) -> List[DuplicateRegistration]:
        return [dup for dup in self.duplicates if dup.shortname == shortname]

    def __len__(self) -> int:
        return len(self.entries)


def build_index(records: Sequence[CrawlRecord]) -> DefinitionIndex:
    """Register every definition of every record.

    When the same ``(url, fragment)`` pair is registered twice, the last
    registration wins and the earlier one is recorded in ``duplicates``.
    """
    index = DefinitionIndex()

    for record in records:
        canonical = normalize_url(record.url)
        previous_owner = index.owners.get(canonical)
        if previous_owner and previous_owner != record.shortname:
            LOGGER.warning(
                "%s and %s share the URL %s; %s takes over",
                previous_owner,
                record.shortname,
                record.url,
                record.shortname,
            )
        index.owners[canonical] = record.shortname
        for url in record.urls:
            alias = normalize_url(url)
            current = index.aliases.get(alias)
            if current and current != canonical:
                LOGGER.debug("URL %s now points to %s instead of %s", url, canonical, current)
            index.aliases[alias] = canonical

        for definition in record.definitions:
            key = (canonical, definition.fragment)
            existing = index.entries.get(key)
            if existing is not None:
                index.duplicates.append(
                    DuplicateRegistration(
                        shortname=record.shortname,
                        fragment=definition.fragment,
                        shadowed=existing.shortname,
                    )
                )
            index.entries[key] = DefinitionEntry(
                shortname=record.shortname,
                kind=definition.kind,
                name=definition.name,
            )

    LOGGER.debug(
        "Indexed %d anchor(s) from %d spec(s) (%d duplicate registration(s))",
        len(index.entries),
        len(records),
        len(index.duplicates),
    )
    return index


@dataclass
class DependencyGraph:
    """Resolved dependencies per shortname, in declaration order."""

    dependencies: "OrderedDict[str, List[str]]" = field(default_factory=OrderedDict)
    warnings: List[StudyWarning] = field(default_factory=list)


def resolve_dependencies(
    records: Sequence[CrawlRecord], index: Optional[DefinitionIndex] = None
) -> DependencyGraph:
    """Resolve declared dependencies against the loaded specifications.

    A dependency matches a shortname, then a series shortname, then a URL.
    Dependencies that match nothing are reported as warnings.
    """
    index = index if index is not None else build_index(records)
    shortnames = {record.shortname for record in records}
    series: Dict[str, str] = {}
    for record in records:
        series.setdefault(record.series, record.shortname)

    graph = DependencyGraph()
    for record in records:
        resolved: List[str] = []
        for dependency in record.dependencies:
            target: Optional[str] = None
            if dependency.name in shortnames:
                target = dependency.name
            elif dependency.name in series:
                target = series[dependency.name]
            else:
                for candidate in (dependency.url, dependency.name):
                    if candidate:
                        target = index.shortname_for(candidate)
                        if target:
                            break

            if target is None:
                warning = UnresolvedDependency(record.shortname, dependency.name)
                LOGGER.warning("Unresolved dependency: %s", warning.message)
                graph.warnings.append(warning)
                continue
            if target != record.shortname and target not in resolved:
                resolved.append(target)
        graph.dependencies[record.shortname] = resolved
    return graph
