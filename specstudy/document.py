"""Data structures shared by the loader, the analyzer and the reports."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class DefinitionKind(str, Enum):
    """Kind of addressable point defined by a specification."""

    dfn = "dfn"
    heading = "heading"
    idl = "idl"
    anchor = "anchor"


class AnomalyKind(str, Enum):
    """Anomaly classes. Values are the keys used in serialized studies."""

    broken_link = "brokenLinks"
    stale_link = "staleLinks"
    duplicate_definition = "duplicateDefinitions"
    orphan_definition = "orphanDefinitions"


LINK_ANOMALIES = (AnomalyKind.broken_link, AnomalyKind.stale_link)


@dataclass(frozen=True, slots=True)
class Link:
    """Outgoing link declared by a specification."""

    url: str
    fragment: Optional[str] = None

    @property
    def target(self) -> str:
        if self.fragment:
            return f"{self.url}#{self.fragment}"
        return self.url


@dataclass(frozen=True, slots=True)
class Definition:
    """Term, heading, IDL member or bare anchor defined by a specification."""

    fragment: str
    name: str = ""
    kind: DefinitionKind = DefinitionKind.dfn


@dataclass(frozen=True, slots=True)
class Dependency:
    """Dependency declared by a specification, as found in the crawl."""

    name: str
    url: Optional[str] = None
    normative: bool = True


@dataclass(frozen=True, slots=True)
class CrawlRecord:
    """Crawled facts about one specification."""

    shortname: str
    url: str
    title: str = ""
    repository: Optional[str] = None
    series: str = ""
    aliases: Tuple[str, ...] = ()
    links: Tuple[Link, ...] = ()
    definitions: Tuple[Definition, ...] = ()
    dependencies: Tuple[Dependency, ...] = ()

    @property
    def urls(self) -> List[str]:
        """Canonical URL first, then the alias URLs."""
        return [self.url, *(alias for alias in self.aliases if alias != self.url)]


@dataclass(frozen=True, slots=True)
class AnomalyRecord:
    """A single finding attributed to a specification.

    Two records are equal (and hash alike) when they share ``kind`` and
    ``target``; the other fields are details that must not make otherwise
    identical findings differ between two runs.
    """

    kind: AnomalyKind
    spec: str = field(compare=False)
    target: str = ""
    target_spec: Optional[str] = field(default=None, compare=False)
    published_only: bool = field(default=False, compare=False)
    shadowed: Optional[str] = field(default=None, compare=False)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.kind.value, self.target)

    @property
    def unknown_spec(self) -> bool:
        """True for a broken link into a specification absent from the crawl."""
        return self.kind == AnomalyKind.broken_link and self.target_spec is None


@dataclass(slots=True)
class StudyWarning:
    """Structural problem that does not stop the analysis."""

    kind: str  # schema, unresolved-dependency
    spec: Optional[str]
    message: str
    dependency: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "kind": self.kind,
            "spec": self.spec,
            "message": self.message,
        }
        if self.dependency is not None:
            data["dependency"] = self.dependency
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StudyWarning":
        return cls(
            kind=str(data.get("kind", "")),
            spec=data.get("spec"),
            message=str(data.get("message", "")),
            dependency=data.get("dependency"),
        )


class UnresolvedDependency(StudyWarning):
    """Declared dependency that points to a specification absent from the crawl."""

    __slots__ = ()

    def __init__(self, spec: str, dependency: str):
        super().__init__(
            kind="unresolved-dependency",
            spec=spec,
            message=f"{spec} depends on {dependency}, which is not in the crawl",
            dependency=dependency,
        )


def group_anomalies(anomalies: List[AnomalyRecord]) -> Dict[str, List[str]]:
    """Group anomaly targets by kind, keeping their relative order."""
    grouped: Dict[str, List[str]] = {kind.value: [] for kind in AnomalyKind}
    for anomaly in anomalies:
        grouped[anomaly.kind.value].append(anomaly.target)
    return grouped


@dataclass(slots=True)
class SpecSummary:
    """Per-specification part of a study."""

    shortname: str
    title: str = ""
    repo: Optional[str] = None
    crawled: str = ""
    series: str = ""
    urls: List[str] = field(default_factory=list)
    anomalies: List[AnomalyRecord] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    link_counts: Dict[str, int] = field(default_factory=dict)

    def of_kind(self, kind: AnomalyKind) -> List[AnomalyRecord]:
        return [anomaly for anomaly in self.anomalies if anomaly.kind == kind]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "title": self.title,
            "repo": self.repo,
            "crawled": self.crawled,
            "series": self.series,
            "urls": list(self.urls),
        }
        data.update(group_anomalies(self.anomalies))
        data["dependencies"] = list(self.dependencies)
        data["linkCounts"] = dict(self.link_counts)
        return data

    @classmethod
    def from_dict(cls, shortname: str, data: Dict[str, Any]) -> "SpecSummary":
        anomalies: List[AnomalyRecord] = []
        for kind in AnomalyKind:
            for target in data.get(kind.value) or []:
                anomalies.append(AnomalyRecord(kind=kind, spec=shortname, target=str(target)))
        crawled = str(data.get("crawled") or "")
        return cls(
            shortname=shortname,
            title=str(data.get("title") or ""),
            repo=data.get("repo"),
            crawled=crawled,
            series=str(data.get("series") or shortname),
            urls=list(data.get("urls") or ([crawled] if crawled else [])),
            anomalies=anomalies,
            dependencies=list(data.get("dependencies") or []),
            link_counts={str(k): int(v) for k, v in (data.get("linkCounts") or {}).items()},
        )


STUDY_TYPE = "study"


@dataclass(slots=True)
class StudyResult:
    """Anomalies of every studied specification.

    ``specs`` is ordered: its iteration order is the order of the crawl
    records the study was computed from, and diffs and reports rely on it.
    """

    specs: "OrderedDict[str, SpecSummary]" = field(default_factory=OrderedDict)
    warnings: List[StudyWarning] = field(default_factory=list)
    title: str = "Crawl study"
    date: Optional[str] = None
    type: str = STUDY_TYPE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "title": self.title,
            "date": self.date,
            "results": {name: summary.to_dict() for name, summary in self.specs.items()},
            "warnings": [warning.to_dict() for warning in self.warnings],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StudyResult":
        specs: "OrderedDict[str, SpecSummary]" = OrderedDict()
        for shortname, summary in (data.get("results") or {}).items():
            specs[shortname] = SpecSummary.from_dict(shortname, summary or {})
        return cls(
            specs=specs,
            warnings=[StudyWarning.from_dict(w) for w in data.get("warnings") or []],
            title=str(data.get("title") or "Crawl study"),
            date=data.get("date"),
        )


@dataclass(slots=True)
class DiffEntry:
    """Anomalies added and removed for one specification between two studies."""

    shortname: str
    status: str  # added, removed, changed, unchanged
    added: List[AnomalyRecord] = field(default_factory=list)
    removed: List[AnomalyRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "added": group_anomalies(self.added),
            "removed": group_anomalies(self.removed),
        }


@dataclass(slots=True)
class DiffResult:
    """Per-specification differences between a reference and a candidate study."""

    entries: "OrderedDict[str, DiffEntry]" = field(default_factory=OrderedDict)
    only_new: bool = False

    @property
    def changed(self) -> List[DiffEntry]:
        return [entry for entry in self.entries.values() if entry.added or entry.removed]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "diff",
            "onlyNew": self.only_new,
            "results": {name: entry.to_dict() for name, entry in self.entries.items()},
        }


@dataclass(slots=True)
class DependencyEntry:
    """Incoming and outgoing dependencies of one specification."""

    shortname: str
    dependents: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    anomaly_counts: Dict[str, int] = field(default_factory=dict)
    link_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dependents": list(self.dependents),
            "dependencies": list(self.dependencies),
            "anomalyCounts": dict(self.anomaly_counts),
            "linkCounts": dict(self.link_counts),
        }


@dataclass(slots=True)
class DependencyReport:
    """Dependency view of a study, keyed by shortname in study order."""

    entries: "OrderedDict[str, DependencyEntry]" = field(default_factory=OrderedDict)
    warnings: List[StudyWarning] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "dependencies",
            "results": {name: entry.to_dict() for name, entry in self.entries.items()},
            "warnings": [warning.to_dict() for warning in self.warnings],
        }
