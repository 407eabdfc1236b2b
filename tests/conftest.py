"""Shared fixtures and the strict test-accounting guard."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

A_URL = "https://example.org/a/"
B_URL = "https://example.org/b/"
C_URL = "https://example.org/c/"


def spec_entry(
    shortname: str,
    url: str,
    *,
    dfns: Optional[List[str]] = None,
    links: Optional[List[str]] = None,
    dependencies: Optional[List[str]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Crawl report entry with dfns given by id and links given as strings."""
    entry: Dict[str, Any] = {
        "shortname": shortname,
        "url": url,
        "title": f"Spec {shortname.upper()}",
        "repository": f"https://github.com/example/{shortname}",
        "dfns": [{"id": dfn, "linkingText": [dfn], "type": "dfn"} for dfn in dfns or []],
        "links": list(links or []),
        "dependencies": list(dependencies or []),
    }
    entry.update(extra)
    return entry


def write_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def crawl() -> Dict[str, Any]:
    """A defines #foo, B links to A#foo and A#bar and depends on A."""
    return {
        "a": spec_entry("a", A_URL, dfns=["foo"]),
        "b": spec_entry(
            "b",
            B_URL,
            links=[A_URL + "#foo", A_URL + "#bar"],
            dependencies=["a"],
        ),
    }


@pytest.fixture
def published_crawl() -> Dict[str, Any]:
    """Published snapshot in which A still defines #bar."""
    return {"a": spec_entry("a", A_URL, dfns=["foo", "bar"])}


# ---------------------------------------------------------------------------
# Strict accounting: a run with skipped or xfail tests fails.
# ---------------------------------------------------------------------------

_UNACCOUNTED: Dict[str, int] = {"deselected": 0, "skipped": 0, "xfailed": 0, "xpassed": 0}


def pytest_deselected(items):  # pragma: no cover - pytest hook
    _UNACCOUNTED["deselected"] += len(items)


def pytest_runtest_logreport(report):  # pragma: no cover - pytest hook
    if report.when not in {"setup", "call"}:
        return
    if getattr(report, "wasxfail", False):
        _UNACCOUNTED["xfailed" if report.outcome == "skipped" else "xpassed"] += 1
    elif report.outcome == "skipped":
        _UNACCOUNTED["skipped"] += 1


def pytest_sessionfinish(session, exitstatus):  # pragma: no cover - pytest hook
    violations = [f"{name}={count}" for name, count in _UNACCOUNTED.items() if count]
    if not violations:
        return
    reporter = session.config.pluginmanager.get_plugin("terminalreporter")
    if reporter:
        reporter.write_sep("=", f"Test accounting violations: {', '.join(violations)}")
    session.exitstatus = 1
