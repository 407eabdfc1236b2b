"""Tests for specstudy.document module."""

from collections import OrderedDict

from specstudy.document import (
    AnomalyKind,
    AnomalyRecord,
    CrawlRecord,
    DiffEntry,
    DiffResult,
    Link,
    SpecSummary,
    StudyResult,
    StudyWarning,
    UnresolvedDependency,
    group_anomalies,
)


class TestLink:
    def test_target_with_fragment(self):
        assert Link(url="https://a.org/", fragment="foo").target == "https://a.org/#foo"

    def test_target_without_fragment(self):
        assert Link(url="https://a.org/").target == "https://a.org/"


class TestCrawlRecord:
    def test_urls_canonical_first_without_repeats(self):
        record = CrawlRecord(
            shortname="a",
            url="https://a.org/",
            aliases=("https://a.org/", "https://www.w3.org/TR/a/"),
        )
        assert record.urls == ["https://a.org/", "https://www.w3.org/TR/a/"]

    def test_defaults(self):
        record = CrawlRecord(shortname="a", url="https://a.org/")
        assert record.links == ()
        assert record.definitions == ()
        assert record.dependencies == ()


class TestAnomalyRecord:
    def test_equality_ignores_details(self):
        first = AnomalyRecord(AnomalyKind.broken_link, "b", "https://a.org/#x", target_spec="a")
        second = AnomalyRecord(AnomalyKind.broken_link, "other", "https://a.org/#x")
        assert first == second
        assert hash(first) == hash(second)

    def test_kind_matters(self):
        broken = AnomalyRecord(AnomalyKind.broken_link, "b", "https://a.org/#x")
        stale = AnomalyRecord(AnomalyKind.stale_link, "b", "https://a.org/#x")
        assert broken != stale
        assert len({broken, stale}) == 2

    def test_unknown_spec(self):
        unknown = AnomalyRecord(AnomalyKind.broken_link, "b", "https://x.org/#y")
        known = AnomalyRecord(AnomalyKind.broken_link, "b", "https://a.org/#y", target_spec="a")
        assert unknown.unknown_spec is True
        assert known.unknown_spec is False

    def test_stale_link_is_never_unknown_spec(self):
        stale = AnomalyRecord(AnomalyKind.stale_link, "b", "https://a.org/#y")
        assert stale.unknown_spec is False


class TestGroupAnomalies:
    def test_keeps_order_and_all_keys(self):
        grouped = group_anomalies(
            [
                AnomalyRecord(AnomalyKind.broken_link, "b", "u#2"),
                AnomalyRecord(AnomalyKind.duplicate_definition, "b", "x"),
                AnomalyRecord(AnomalyKind.broken_link, "b", "u#1"),
            ]
        )
        assert grouped["brokenLinks"] == ["u#2", "u#1"]
        assert grouped["duplicateDefinitions"] == ["x"]
        assert grouped["staleLinks"] == []
        assert grouped["orphanDefinitions"] == []


class TestStudyResult:
    def _study(self) -> StudyResult:
        specs = OrderedDict()
        specs["z"] = SpecSummary(
            shortname="z",
            title="Z",
            repo="https://github.com/example/z",
            crawled="https://z.org/",
            anomalies=[AnomalyRecord(AnomalyKind.stale_link, "z", "https://a.org/#s")],
            dependencies=["a"],
            link_counts={"a": 3},
        )
        specs["a"] = SpecSummary(shortname="a", title="A", crawled="https://a.org/")
        return StudyResult(
            specs=specs,
            warnings=[UnresolvedDependency("z", "missing")],
            date="2026-10-18T00:00:00+00:00",
        )

    def test_to_dict_shape(self):
        data = self._study().to_dict()
        assert data["type"] == "study"
        assert list(data["results"]) == ["z", "a"]
        z = data["results"]["z"]
        assert z["title"] == "Z"
        assert z["repo"] == "https://github.com/example/z"
        assert z["crawled"] == "https://z.org/"
        assert z["staleLinks"] == ["https://a.org/#s"]
        assert z["brokenLinks"] == []
        assert z["linkCounts"] == {"a": 3}
        assert data["warnings"][0]["dependency"] == "missing"

    def test_from_dict_restores_order_and_anomalies(self):
        original = self._study()
        restored = StudyResult.from_dict(original.to_dict())
        assert list(restored.specs) == ["z", "a"]
        assert restored.specs["z"].anomalies == original.specs["z"].anomalies
        assert restored.specs["z"].dependencies == ["a"]
        assert restored.specs["a"].urls == ["https://a.org/"]
        assert restored.warnings[0].kind == "unresolved-dependency"


class TestWarnings:
    def test_unresolved_dependency(self):
        warning = UnresolvedDependency("b", "nope")
        assert isinstance(warning, StudyWarning)
        assert warning.kind == "unresolved-dependency"
        assert warning.spec == "b"
        assert "nope" in warning.message

    def test_to_dict_omits_empty_dependency(self):
        warning = StudyWarning(kind="schema", spec="x", message="missing url")
        assert "dependency" not in warning.to_dict()


class TestDiffResult:
    def test_changed_and_to_dict(self):
        added = AnomalyRecord(AnomalyKind.broken_link, "b", "u#1")
        entries = OrderedDict(
            [
                ("a", DiffEntry(shortname="a", status="unchanged")),
                ("b", DiffEntry(shortname="b", status="changed", added=[added])),
            ]
        )
        result = DiffResult(entries=entries, only_new=True)
        assert [entry.shortname for entry in result.changed] == ["b"]
        data = result.to_dict()
        assert data["onlyNew"] is True
        assert data["results"]["b"]["added"]["brokenLinks"] == ["u#1"]
        assert data["results"]["b"]["removed"]["brokenLinks"] == []
