"""Load crawl reports (and previously produced studies) from disk or HTTP.

A crawl report is a JSON document keyed by specification shortname, or a
crawl index whose ``results`` holds the per-specification entries. Reports
may be referenced directly or through the folder that contains them:

    from specstudy.loader import load_reports

    loaded = load_reports("./webref")          # ed/index.json (+ tr/index.json)
    loaded = load_reports("crawl.json", "tr/index.json")
    for record in loaded.current:
        print(record.shortname, len(record.links))
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urljoin

import httpx

from .config import DEFAULT_TIMEOUT
from .document import (
    STUDY_TYPE,
    CrawlRecord,
    Definition,
    DefinitionKind,
    Dependency,
    Link,
    StudyResult,
    StudyWarning,
)
from .urls import is_remote, split_fragment

LOGGER = logging.getLogger(__name__)

INDEX_FILE = "index.json"

# Record fields whose value may be a path to a side file
SIDE_FILE_FIELDS = ("links", "definitions", "dfns", "headings", "ids", "refs", "dependencies")

# Definition types that describe Web IDL constructs
IDL_TYPES = frozenset(
    {
        "argument",
        "attribute",
        "callback",
        "const",
        "constructor",
        "dict-member",
        "dictionary",
        "enum",
        "enum-value",
        "exception",
        "extended-attribute",
        "interface",
        "iterator",
        "maplike",
        "method",
        "namespace",
        "setlike",
        "stringifier",
        "typedef",
    }
)


class LoadError(Exception):
    """Raised when a report cannot be reached, read or parsed."""

    def __init__(self, message: str, location: str = ""):
        self.location = location
        super().__init__(message)


class SchemaError(ValueError):
    """Raised when a crawl record lacks required fields."""

    def __init__(self, message: str, shortname: Optional[str] = None):
        self.shortname = shortname
        super().__init__(message)


@dataclass
class LoadedReports:
    """Outcome of loading the main report and the optional published one."""

    current: List[CrawlRecord] = field(default_factory=list)
    published: Optional[List[CrawlRecord]] = None
    study: Optional[StudyResult] = None
    warnings: List[StudyWarning] = field(default_factory=list)
    published_warnings: List[StudyWarning] = field(default_factory=list)
    location: str = ""
    published_location: Optional[str] = None
    title: Optional[str] = None
    date: Optional[str] = None


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


def resolve_report_locations(
    report: str, published: Optional[str] = None
) -> Tuple[str, Optional[str]]:
    """Turn folder-style locations into index file locations.

    A local folder that contains an ``ed`` sub-folder is a crawl of
    Editor's Drafts; a sibling ``tr`` folder is then used as the published
    report unless one was given explicitly.
    """
    main = str(report)
    secondary = str(published) if published else None

    if not main.endswith(".json"):
        if is_remote(main):
            main = main.rstrip("/") + "/" + INDEX_FILE
        else:
            folder = Path(main)
            if (folder / "ed").is_dir():
                if secondary is None and (folder / "tr").is_dir():
                    secondary = str(folder / "tr")
                folder = folder / "ed"
            main = str(folder / INDEX_FILE)

    if secondary and not secondary.endswith(".json"):
        if is_remote(secondary):
            secondary = secondary.rstrip("/") + "/" + INDEX_FILE
        else:
            secondary = str(Path(secondary) / INDEX_FILE)

    return main, secondary


def join_location(base: str, relative: str) -> str:
    """Resolve ``relative`` against the location of the report ``base``."""
    if is_remote(relative):
        return relative
    if is_remote(base):
        return urljoin(base, relative)
    return str(Path(base).parent / relative)


async def read_json_async(location: str, *, timeout: float = DEFAULT_TIMEOUT) -> Any:
    """Read and decode the JSON document at ``location``."""
    if is_remote(location):
        try:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                response = await client.get(location)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as exc:
            raise LoadError(
                f"Could not fetch {location}: HTTP {exc.response.status_code}",
                location=location,
            ) from exc
        except httpx.RequestError as exc:
            raise LoadError(f"Request failed for {location}: {exc}", location=location) from exc
        except ValueError as exc:
            raise LoadError(f"Invalid JSON in {location}: {exc}", location=location) from exc

    path = Path(location).expanduser()
    if not path.is_file():
        raise LoadError(f"Could not find/access report: {location}", location=location)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except OSError as exc:
        raise LoadError(f"Could not read {location}: {exc}", location=location) from exc
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise LoadError(f"Invalid JSON in {location}: {exc}", location=location) from exc


# ---------------------------------------------------------------------------
# Record parsing
# ---------------------------------------------------------------------------


def _series_from_shortname(shortname: str) -> str:
    stem, sep, version = shortname.rpartition("-")
    if sep and stem and version.replace(".", "").isdigit():
        return stem
    return shortname


def _as_list(value: Any, field_name: str, shortname: str) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    LOGGER.warning(
        "%s: ignoring malformed '%s' field (expected a list, got %s)",
        shortname,
        field_name,
        type(value).__name__,
    )
    return []


def _parse_links(value: Any, shortname: str) -> List[Link]:
    links: List[Link] = []
    if value is None:
        return links

    if isinstance(value, dict):
        if "rawlinks" in value or "autolinks" in value:
            buckets = [value.get("rawlinks") or {}, value.get("autolinks") or {}]
        else:
            buckets = [value]
        for bucket in buckets:
            if not isinstance(bucket, dict):
                continue
            for url, details in bucket.items():
                if isinstance(details, dict):
                    anchors = details.get("anchors") or []
                elif isinstance(details, list):
                    anchors = details
                else:
                    anchors = []
                base, inline = split_fragment(url)
                if inline:
                    links.append(Link(url=base, fragment=inline))
                if not anchors and not inline:
                    links.append(Link(url=base))
                for anchor in anchors:
                    if anchor:
                        links.append(Link(url=base, fragment=split_fragment("#" + str(anchor))[1]))
        return links

    for entry in _as_list(value, "links", shortname):
        if isinstance(entry, str):
            base, fragment = split_fragment(entry)
        elif isinstance(entry, dict):
            base, fragment = split_fragment(str(entry.get("url") or entry.get("href") or ""))
            if entry.get("fragment"):
                fragment = split_fragment("#" + str(entry["fragment"]))[1]
        else:
            continue
        if base:
            links.append(Link(url=base, fragment=fragment))
    return links


def _definition_kind(raw_kind: Any) -> DefinitionKind:
    if not raw_kind:
        return DefinitionKind.dfn
    kind = str(raw_kind).lower()
    if kind in IDL_TYPES:
        return DefinitionKind.idl
    try:
        return DefinitionKind(kind)
    except ValueError:
        return DefinitionKind.dfn


def _fragment_of(value: Any) -> Optional[str]:
    if not value:
        return None
    raw = str(value)
    if "#" in raw:
        return split_fragment(raw)[1]
    return split_fragment("#" + raw)[1]


def _parse_definitions(raw: Dict[str, Any], shortname: str) -> List[Definition]:
    definitions: List[Definition] = []

    for entry in _as_list(raw.get("definitions"), "definitions", shortname):
        if not isinstance(entry, dict):
            continue
        fragment = _fragment_of(entry.get("fragment") or entry.get("id"))
        if fragment:
            definitions.append(
                Definition(
                    fragment=fragment,
                    name=str(entry.get("name") or fragment),
                    kind=_definition_kind(entry.get("kind")),
                )
            )

    for entry in _as_list(raw.get("dfns"), "dfns", shortname):
        if not isinstance(entry, dict):
            continue
        fragment = _fragment_of(entry.get("id") or entry.get("href"))
        if not fragment:
            continue
        texts = entry.get("linkingText") or []
        name = texts[0] if isinstance(texts, list) and texts else fragment
        definitions.append(
            Definition(fragment=fragment, name=str(name), kind=_definition_kind(entry.get("type")))
        )

    for entry in _as_list(raw.get("headings"), "headings", shortname):
        if not isinstance(entry, dict):
            continue
        fragment = _fragment_of(entry.get("id") or entry.get("href"))
        if fragment:
            definitions.append(
                Definition(
                    fragment=fragment,
                    name=str(entry.get("title") or fragment),
                    kind=DefinitionKind.heading,
                )
            )

    # Bare ids only add anchors that no other collection defines
    known = {definition.fragment for definition in definitions}
    for entry in _as_list(raw.get("ids"), "ids", shortname):
        fragment = _fragment_of(entry)
        if fragment and fragment not in known:
            known.add(fragment)
            definitions.append(Definition(fragment=fragment, name=fragment, kind=DefinitionKind.anchor))

    return definitions


def _parse_dependency(entry: Any, normative: bool) -> Optional[Dependency]:
    if isinstance(entry, str) and entry.strip():
        name = entry.strip()
        return Dependency(name=name, url=name if is_remote(name) else None, normative=normative)
    if isinstance(entry, dict):
        name = entry.get("name") or entry.get("shortname") or entry.get("url")
        if not name:
            return None
        return Dependency(
            name=str(name),
            url=entry.get("url"),
            normative=bool(entry.get("normative", normative)),
        )
    return None


def _parse_dependencies(raw: Dict[str, Any], shortname: str) -> List[Dependency]:
    dependencies: List[Dependency] = []
    for entry in _as_list(raw.get("dependencies"), "dependencies", shortname):
        dependency = _parse_dependency(entry, True)
        if dependency:
            dependencies.append(dependency)

    refs = raw.get("refs")
    if isinstance(refs, dict):
        for bucket, normative in (("normative", True), ("informative", False)):
            for entry in _as_list(refs.get(bucket), f"refs.{bucket}", shortname):
                dependency = _parse_dependency(entry, normative)
                if dependency:
                    dependencies.append(dependency)
    return dependencies


def parse_record(raw: Any) -> CrawlRecord:
    """Validate one crawl entry and convert it into a :class:`CrawlRecord`.

    Raises:
        SchemaError: If the entry is not an object or lacks ``shortname``
            or ``url``.
    """
    if not isinstance(raw, dict):
        raise SchemaError("Crawl record must be a JSON object")

    shortname = raw.get("shortname")
    url = raw.get("url")
    missing = [
        name
        for name, value in (("shortname", shortname), ("url", url))
        if not isinstance(value, str) or not value.strip()
    ]
    if missing:
        raise SchemaError(
            f"Crawl record is missing required field(s): {', '.join(missing)}",
            shortname=shortname if isinstance(shortname, str) else None,
        )
    shortname = shortname.strip()

    nightly = raw.get("nightly") if isinstance(raw.get("nightly"), dict) else {}
    release = raw.get("release") if isinstance(raw.get("release"), dict) else {}

    series = raw.get("series")
    if isinstance(series, dict):
        series = series.get("shortname")
    if not isinstance(series, str) or not series:
        series = _series_from_shortname(shortname)

    aliases: List[str] = []
    for alias in [nightly.get("url"), release.get("url"), *_as_list(raw.get("aliases"), "aliases", shortname)]:
        if isinstance(alias, str) and alias and alias != url and alias not in aliases:
            aliases.append(alias)

    return CrawlRecord(
        shortname=shortname,
        url=url.strip(),
        title=str(raw.get("title") or shortname),
        repository=raw.get("repository") or raw.get("repo") or nightly.get("repository"),
        series=series,
        aliases=tuple(aliases),
        links=tuple(_parse_links(raw.get("links"), shortname)),
        definitions=tuple(_parse_definitions(raw, shortname)),
        dependencies=tuple(_parse_dependencies(raw, shortname)),
    )


# ---------------------------------------------------------------------------
# Report loading
# ---------------------------------------------------------------------------


def _iter_entries(data: Dict[str, Any]) -> Iterable[Tuple[str, Any]]:
    results = data.get("results") if "results" in data else None
    if isinstance(results, list):
        for position, entry in enumerate(results):
            key = entry.get("shortname") if isinstance(entry, dict) else None
            yield str(key or f"#{position}"), entry
        return
    mapping = results if isinstance(results, dict) else data
    for key, entry in mapping.items():
        if isinstance(entry, dict):
            yield str(key), entry


def _report_metadata(data: Dict[str, Any]) -> Dict[str, str]:
    """Top-level ``title`` and ``date`` of a crawl report, when given as strings."""
    return {
        name: data[name]
        for name in ("title", "date")
        if isinstance(data.get(name), str) and data[name]
    }


def _unwrap_side_file(name: str, data: Any) -> Any:
    if isinstance(data, dict) and name in data:
        return data[name]
    return data


async def _inline_side_files(
    entries: List[Tuple[str, Any]], location: str, timeout: float
) -> None:
    pending: List[Tuple[Dict[str, Any], str, str]] = []
    for _, entry in entries:
        if not isinstance(entry, dict):
            continue
        for name in SIDE_FILE_FIELDS:
            value = entry.get(name)
            if isinstance(value, str) and value.endswith(".json"):
                pending.append((entry, name, join_location(location, value)))

    if not pending:
        return
    LOGGER.debug("Loading %d side file(s) referenced by %s", len(pending), location)
    documents = await asyncio.gather(
        *(read_json_async(side, timeout=timeout) for _, _, side in pending)
    )
    for (entry, name, _), document in zip(pending, documents):
        entry[name] = _unwrap_side_file(name, document)


async def load_report_async(
    location: str, *, timeout: float = DEFAULT_TIMEOUT
) -> Tuple[Optional[StudyResult], List[CrawlRecord], List[StudyWarning], Dict[str, str]]:
    """Load one report.

    Returns:
        ``(study, records, warnings, metadata)``: ``study`` is set when the
        document is a previously produced study, otherwise ``records`` holds
        the valid crawl records in document order. ``metadata`` holds the
        report's own ``title`` and ``date``, if any.

    Raises:
        LoadError: If the report is unreachable, unreadable or malformed.
    """
    data = await read_json_async(location, timeout=timeout)
    if not isinstance(data, dict):
        raise LoadError(
            f"Report {location} must be a JSON object keyed by shortname",
            location=location,
        )

    if data.get("type") == STUDY_TYPE:
        LOGGER.info("Loaded study report from %s", location)
        return StudyResult.from_dict(data), [], [], {}

    entries = list(_iter_entries(data))
    await _inline_side_files(entries, location, timeout)

    records: List[CrawlRecord] = []
    warnings: List[StudyWarning] = []
    for key, entry in entries:
        try:
            record = parse_record(entry)
        except SchemaError as exc:
            LOGGER.warning("Skipping spec %s in %s: %s", key, location, exc)
            warnings.append(StudyWarning(kind="schema", spec=exc.shortname or key, message=str(exc)))
            continue
        if not key.startswith("#") and key != record.shortname:
            LOGGER.debug("Report key %s differs from shortname %s", key, record.shortname)
        records.append(record)

    LOGGER.info("Loaded %d spec(s) from %s", len(records), location)
    return None, records, warnings, _report_metadata(data)


async def load_reports_async(
    report: str,
    published: Optional[str] = None,
    *,
    timeout: float = DEFAULT_TIMEOUT,
) -> LoadedReports:
    """Load the main report and, when given or found, the published one.

    Both reports are read concurrently.
    """
    main_location, published_location = resolve_report_locations(report, published)

    if published_location:
        main, secondary = await asyncio.gather(
            load_report_async(main_location, timeout=timeout),
            load_report_async(published_location, timeout=timeout),
        )
    else:
        main = await load_report_async(main_location, timeout=timeout)
        secondary = None

    study, current, warnings, metadata = main
    published_records: Optional[List[CrawlRecord]] = None
    published_warnings: List[StudyWarning] = []
    if secondary is not None:
        published_study, published_records, published_warnings, _ = secondary
        if published_study is not None:
            raise LoadError(
                f"Published report {published_location} is a study, not a crawl report",
                location=published_location or "",
            )

    return LoadedReports(
        current=current,
        published=published_records,
        study=study,
        warnings=warnings,
        published_warnings=published_warnings,
        location=main_location,
        published_location=published_location,
        title=metadata.get("title"),
        date=metadata.get("date"),
    )


def load_reports(
    report: str,
    published: Optional[str] = None,
    *,
    timeout: float = DEFAULT_TIMEOUT,
) -> LoadedReports:
    """Synchronous wrapper for :func:`load_reports_async`."""
    return asyncio.run(load_reports_async(report, published, timeout=timeout))
