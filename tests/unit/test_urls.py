"""Tests for URL resolution."""

import pytest

from event_pipeline.extractors.urls import ensure_absolute_event_urls, is_absolute_url, resolve_url
from event_pipeline.models import Event

BASE = "https://www.muenster.de/veranstaltungen/"


class TestResolveUrl:
    """Tests for resolving hrefs against the source URL."""

    @pytest.mark.parametrize("href,expected", [
        ("/events/stadtfest", "https://www.muenster.de/events/stadtfest"),
        ("sommer.html", "https://www.muenster.de/veranstaltungen/sommer.html"),
        ("../kontakt", "https://www.muenster.de/kontakt"),
        ("//cdn.example.org/flyer.pdf", "https://cdn.example.org/flyer.pdf"),
        ("  /events/1  ", "https://www.muenster.de/events/1"),
    ])
    def test_relative_hrefs(self, href: str, expected: str):
        assert resolve_url(href, BASE) == expected

    @pytest.mark.parametrize("href", [
        "https://hafen.example.org/flohmarkt",
        "http://example.com/a?b=c",
        "HTTPS://EXAMPLE.COM/X",
    ])
    def test_absolute_unchanged(self, href: str):
        assert resolve_url(href, BASE) == href

    @pytest.mark.parametrize("href", ["/a/b", "c.html", "https://x.org/y"])
    def test_idempotent(self, href: str):
        once = resolve_url(href, BASE)
        assert resolve_url(once, BASE) == once

    def test_is_absolute(self):
        assert is_absolute_url("https://a.b")
        assert is_absolute_url("http://a.b")
        assert not is_absolute_url("/a")
        assert not is_absolute_url("ftp://a.b")


class TestEnsureAbsoluteEventUrls:
    """Tests for post-extraction URL fixing."""

    def test_relative_event_urls_resolved(self):
        events = [
            Event(title="Stadtfest", url="/events/stadtfest"),
            Event(title="Flohmarkt", url="https://hafen.example.org/flohmarkt"),
        ]

        ensure_absolute_event_urls(events, BASE)

        assert events[0].url == "https://www.muenster.de/events/stadtfest"
        assert events[1].url == "https://hafen.example.org/flohmarkt"

    def test_empty_url_left_alone(self):
        events = [Event(title="Ohne Link")]

        ensure_absolute_event_urls(events, BASE)

        assert events[0].url == ""
