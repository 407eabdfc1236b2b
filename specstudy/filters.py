"""Restrict a study to a subset of specifications.

Filter values may be shortnames, series shortnames, specification URLs or
paths to JSON files that list any of those. ``all`` disables filtering.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Sequence

from .config import ConfigError
from .urls import is_remote, normalize_url

LOGGER = logging.getLogger(__name__)


class FilterableSpec(Protocol):
    """Anything that exposes the identifiers a filter can match."""

    shortname: str
    series: str

    @property
    def urls(self) -> List[str]: ...


def _read_filter_file(path: Path) -> List[str]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Could not read spec list {path}: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("specs")
    if not isinstance(data, list):
        raise ConfigError(f"Spec list {path} must be a JSON array of shortnames or URLs")
    values: List[str] = []
    for entry in data:
        if isinstance(entry, str):
            values.append(entry)
        elif isinstance(entry, dict) and (entry.get("shortname") or entry.get("url")):
            values.append(str(entry.get("shortname") or entry.get("url")))
    return values


@dataclass
class SpecFilter:
    """Allow-list of specifications, matched by shortname, series or URL."""

    names: List[str] = field(default_factory=list)
    urls: List[str] = field(default_factory=list)

    @classmethod
    def from_values(cls, values: Optional[Iterable[str]]) -> Optional["SpecFilter"]:
        """Build a filter from command-line style values.

        Returns None when no filtering applies (no values, or ``all``).
        """
        if not values:
            return None
        expanded: List[str] = []
        for value in values:
            value = str(value).strip()
            if not value:
                continue
            if value == "all":
                return None
            if value.endswith(".json") and not is_remote(value):
                expanded.extend(_read_filter_file(Path(value).expanduser()))
            else:
                expanded.append(value)

        spec_filter = cls()
        for value in expanded:
            if is_remote(value):
                spec_filter.urls.append(normalize_url(value))
            else:
                spec_filter.names.append(value)
        return spec_filter

    def matches(self, spec: FilterableSpec) -> bool:
        if spec.shortname in self.names or spec.series in self.names:
            return True
        return any(normalize_url(url) in self.urls for url in spec.urls)

    def select(self, specs: Sequence[FilterableSpec], *, allow_empty: bool = False) -> List[str]:
        """Return the shortnames of the matching specs, in input order.

        ``allow_empty`` is for secondary inputs such as a diff reference,
        which may legitimately lack specs the main report has.

        Raises:
            ConfigError: If no spec matches and ``allow_empty`` is not set.
        """
        selected = [spec.shortname for spec in specs if self.matches(spec)]
        if allow_empty:
            return selected
        if not selected:
            raise ConfigError("The spec filter does not match any specification in the report")

        for name in self.names:
            if not any(name in (spec.shortname, spec.series) for spec in specs):
                LOGGER.warning("Spec filter value '%s' matches no specification", name)
        for url in self.urls:
            if not any(url == normalize_url(u) for spec in specs for u in spec.urls):
                LOGGER.warning("Spec filter URL '%s' matches no specification", url)
        return selected
