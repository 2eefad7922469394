"""Tests for the JSON event store."""

from event_pipeline.extractors.event_store import EventStore
from event_pipeline.models import Event, ExtractionSettings

SOURCE = "https://www.muenster.de/veranstaltungen/"


class TestEventUpsert:
    """Tests for inserting and refreshing events."""

    def test_new_events_inserted(self, store, sample_events):
        created, updated = store.upsert_events(sample_events, SOURCE)

        assert (created, updated) == (2, 0)
        stored = store.get_events_by_source_url(SOURCE)
        assert [e.id for e in stored] == [1, 2]
        assert all(e.source_url == SOURCE for e in stored)

    def test_similar_title_updates_in_place(self, store, sample_events):
        store.upsert_events(sample_events, SOURCE)

        changed = Event(
            title="Stadtfest Münster 2025",
            description="Neues Programm",
            category="Kultur/Lifestyle",
            date="2025-06-15",
        )
        created, updated = store.upsert_events([changed], SOURCE)

        assert (created, updated) == (0, 1)
        stadtfest = store.get_events_by_source_url(SOURCE)[0]
        assert stadtfest.title == "Stadtfest Münster"
        assert stadtfest.description == "Neues Programm"
        assert stadtfest.category == "Kultur/Lifestyle"

    def test_unchanged_event_not_counted(self, store, sample_events):
        store.upsert_events(sample_events, SOURCE)

        assert store.upsert_events(sample_events, SOURCE) == (0, 0)

    def test_sources_are_separate(self, store, sample_events):
        store.upsert_events(sample_events, SOURCE)
        store.upsert_events(sample_events[:1], "https://example.org/kalender")

        assert len(store.get_events_by_source_url(SOURCE)) == 2
        assert len(store.get_events_by_source_url("https://example.org/kalender")) == 1

    def test_ordered_by_date_then_title(self, store):
        store.upsert_events([
            Event(title="Jazzabend", date="2025-07-01"),
            Event(title="Flohmarkt", date="2025-06-01"),
            Event(title="Bücherbasar", date="2025-06-01"),
        ], SOURCE)

        titles = [e.title for e in store.get_events_by_source_url(SOURCE)]

        assert titles == ["Bücherbasar", "Flohmarkt", "Jazzabend"]

    def test_persisted_to_disk(self, store, sample_events):
        store.upsert_events(sample_events, SOURCE)

        reloaded = EventStore(store.store_path)

        assert [e.title for e in reloaded.get_events_by_source_url(SOURCE)] == [
            "Stadtfest Münster", "Flohmarkt am Hafen",
        ]

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "event_store.json"
        path.write_text("{not json")

        store = EventStore(path)

        assert store.stats()["events"] == 0


class TestSettings:
    """Tests for per-source settings."""

    def test_unknown_source(self, store):
        assert store.get_settings(SOURCE) is None

    def test_roundtrip(self, store):
        store.save_settings(SOURCE, ExtractionSettings(max_text_length=120, gpt_model="gpt-4o"))

        settings = EventStore(store.store_path).get_settings(SOURCE)

        assert settings.max_text_length == 120
        assert settings.gpt_model == "gpt-4o"
        assert store.get_all_settings()[0].settings["maxTextLength"] == 120

    def test_set_expected_events(self, store):
        store.save_settings(SOURCE, ExtractionSettings(gpt_model="gpt-4o"))

        store.set_expected_events(SOURCE, 12)

        settings = store.get_settings(SOURCE)
        assert settings.expected_events == 12
        assert settings.gpt_model == "gpt-4o"

    def test_clear_expected_events(self, store):
        store.set_expected_events(SOURCE, 12)
        store.set_expected_events(SOURCE, 0)

        assert store.get_settings(SOURCE).expected_events is None


class TestRunHistory:
    """Tests for attempts and scores."""

    def test_attempts_per_source(self, store):
        store.log_scraping_attempt(SOURCE, {"gptModel": "a"}, 4)
        store.log_scraping_attempt("https://example.org", {}, 1)
        store.log_scraping_attempt(SOURCE, {"gptModel": "b"}, 6)

        attempts = store.get_scraping_attempts(SOURCE)

        assert [a["event_count"] for a in attempts] == [4, 6]
        assert [a["id"] for a in attempts] == [1, 3]

    def test_scores_filtered_by_type(self, store):
        store.save_score(SOURCE, "known", {"score": 0.8})
        store.save_score(SOURCE, "unknown", {"median": 5})

        assert len(store.get_scores(SOURCE)) == 2
        assert store.get_scores(SOURCE, "known")[0]["score_data"] == {"score": 0.8}

    def test_stats(self, store, sample_events):
        store.upsert_events(sample_events, SOURCE)
        store.log_scraping_attempt(SOURCE, {}, 2)

        stats = store.stats()

        assert stats["events"] == 2
        assert stats["by_source"] == {SOURCE: 2}
        assert stats["attempts"] == 1
