"""Tests for specstudy.urls module."""

import pytest

from specstudy.urls import is_remote, normalize_url, split_fragment


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("", ""),
        ("https://example.org/a/", "https://example.org/a/"),
        ("https://example.org/a", "https://example.org/a/"),
        ("HTTPS://Example.ORG/a/", "https://example.org/a/"),
        ("https://example.org/a/index.html", "https://example.org/a/"),
        ("https://example.org/a/#frag", "https://example.org/a/"),
        ("https://example.org/a/?x=1", "https://example.org/a/"),
        ("https://example.org", "https://example.org/"),
        ("https://example.org/spec.html", "https://example.org/spec.html"),
        ("not a url#frag", "not a url"),
    ],
)
def test_normalize_url(raw, expected):
    assert normalize_url(raw) == expected


class TestSplitFragment:
    def test_with_fragment(self):
        assert split_fragment("https://a.org/#foo") == ("https://a.org/", "foo")

    def test_without_fragment(self):
        assert split_fragment("https://a.org/") == ("https://a.org/", None)

    def test_empty_fragment(self):
        assert split_fragment("https://a.org/#") == ("https://a.org/", None)

    def test_percent_encoded_fragment_is_decoded(self):
        assert split_fragment("https://a.org/#dom-foo%5B%5D") == ("https://a.org/", "dom-foo[]")


class TestIsRemote:
    def test_urls(self):
        assert is_remote("https://a.org/index.json")
        assert is_remote("HTTP://a.org/")

    def test_paths(self):
        assert not is_remote("./crawl/index.json")
        assert not is_remote("")
