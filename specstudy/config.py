"""Analysis options and configuration errors."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


class ConfigError(ValueError):
    """Raised when the requested operations or options cannot be honoured."""


@dataclass
class StudyOptions:
    """Options that tune the analysis of a crawl.

    Attributes:
        exclude_patterns: Regular expressions; links whose literal target
            matches one of them are never reported as broken or stale.
        report_orphans: Report definitions that no link in the crawl uses.
        timeout: Timeout in seconds for reports fetched over HTTP.
    """

    exclude_patterns: List[str] = field(default_factory=list)
    report_orphans: bool = False
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        self._compiled: List[Pattern[str]] = []
        for pattern in self.exclude_patterns:
            try:
                self._compiled.append(re.compile(pattern))
            except re.error as exc:
                raise ConfigError(
                    f"Invalid link exclusion pattern '{pattern}': {exc}"
                ) from exc

    def is_excluded(self, target: str) -> bool:
        """Return True when ``target`` matches one of the exclusion patterns."""
        return any(pattern.search(target) for pattern in self._compiled)


def _split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def load_options_from_env() -> StudyOptions:
    """Build options from environment variables.

    Supported variables:
        SPECSTUDY_EXCLUDE_LINKS: Comma-separated link exclusion patterns.
        SPECSTUDY_REPORT_ORPHANS: Set to 1/true to report orphan definitions.
        SPECSTUDY_TIMEOUT: HTTP timeout in seconds.
    """
    timeout = DEFAULT_TIMEOUT
    raw_timeout = os.environ.get("SPECSTUDY_TIMEOUT")
    if raw_timeout:
        try:
            timeout = float(raw_timeout)
        except ValueError:
            LOGGER.warning(
                "Invalid SPECSTUDY_TIMEOUT '%s'; falling back to %s.",
                raw_timeout,
                DEFAULT_TIMEOUT,
            )

    orphans = os.environ.get("SPECSTUDY_REPORT_ORPHANS", "").strip().lower()
    return StudyOptions(
        exclude_patterns=_split_list(os.environ.get("SPECSTUDY_EXCLUDE_LINKS")),
        report_orphans=orphans in _TRUE_VALUES,
        timeout=timeout,
    )


def ensure_exclusive(diff: bool, dependencies: bool) -> None:
    """Diff and dependency reports cannot be requested together."""
    if diff and dependencies:
        raise ConfigError("Diff and dependencies reports cannot both be requested.")
