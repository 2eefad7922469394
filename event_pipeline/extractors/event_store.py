"""JSON-file store for events, per-source settings, attempts and scores."""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from rich.console import Console

from event_pipeline.models import Event, ExtractionSettings
from event_pipeline.normalizers.dedup import SIMILARITY_THRESHOLD, title_similarity

console = Console()

STORE_DIR = Path(__file__).parent.parent.parent / ".cache"
STORE_FILE = STORE_DIR / "event_store.json"


def default_store_path() -> Path:
    env_path = os.environ.get("EVENT_STORE_PATH")
    return Path(env_path) if env_path else STORE_FILE


class StoredEvent(Event):
    """An event as persisted for one source URL."""

    id: int
    source_url: str
    created_at: float
    updated_at: float


class SourceSettingsRecord(BaseModel):
    """Stored settings of one source URL."""

    source_url: str
    settings: dict = Field(default_factory=dict)  # camelCase settings record
    created_at: float
    updated_at: float

    class Config:
        extra = "ignore"


class EventStore:
    """Manages a persistent store of extracted events and run history."""

    def __init__(self, store_path: Optional[Path] = None):
        self.store_path = Path(store_path) if store_path else default_store_path()
        self._events: list[StoredEvent] = []
        self._settings: dict[str, SourceSettingsRecord] = {}
        self._attempts: list[dict] = []
        self._scores: list[dict] = []
        self._load()

    def _load(self) -> None:
        """Load store from disk."""
        if not self.store_path.exists():
            return
        try:
            with open(self.store_path) as f:
                data = json.load(f)
            self._events = [StoredEvent.model_validate(e) for e in data.get("events", [])]
            for record in data.get("settings", []):
                entry = SourceSettingsRecord.model_validate(record)
                self._settings[entry.source_url] = entry
            self._attempts = data.get("attempts", [])
            self._scores = data.get("scores", [])
            console.print(f"[dim]Loaded {len(self._events)} events from store[/dim]")
        except (OSError, ValueError) as e:
            console.print(f"[yellow]Failed to load event store: {e}[/yellow]")
            self._events, self._settings = [], {}
            self._attempts, self._scores = [], []

    def _save(self) -> None:
        """Save store to disk."""
        self.store_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.store_path, "w") as f:
            json.dump({
                "updated_at": datetime.now().timestamp(),
                "events": [e.model_dump() for e in self._events],
                "settings": [s.model_dump() for s in self._settings.values()],
                "attempts": self._attempts,
                "scores": self._scores,
            }, f, indent=2, ensure_ascii=False)

    @staticmethod
    def _next_id(records: list) -> int:
        ids = [r.id if isinstance(r, BaseModel) else r.get("id", 0) for r in records]
        return max(ids, default=0) + 1

    # ----- events -----

    def get_events_by_source_url(self, source_url: str) -> list[StoredEvent]:
        """Events of one source, ordered by date then title."""
        events = [e for e in self._events if e.source_url == source_url]
        events.sort(key=lambda e: (e.date, e.title))
        return events

    def find_similar_events(
        self,
        event: Event,
        source_url: str,
        threshold: float = SIMILARITY_THRESHOLD,
    ) -> list[StoredEvent]:
        """Stored events of the same source whose title is similar to ``event``'s."""
        return [
            stored for stored in self._events
            if stored.source_url == source_url
            and title_similarity(stored.title, event.title) > threshold
        ]

    def upsert_events(self, events: list[Event], source_url: str) -> tuple[int, int]:
        """Insert new events, refresh description/category of similar ones.

        Returns:
            (created, updated) counts
        """
        created = updated = 0
        now = datetime.now().timestamp()

        for event in events:
            existing = self.find_similar_events(event, source_url)
            if not existing:
                self._events.append(StoredEvent(
                    **event.model_dump(include=set(Event.model_fields)),
                    id=self._next_id(self._events),
                    source_url=source_url,
                    created_at=now,
                    updated_at=now,
                ))
                created += 1
                continue

            match = existing[0]
            if match.description != event.description or match.category != event.category:
                match.description = event.description
                match.category = event.category
                match.updated_at = now
                updated += 1

        self._save()
        console.print(f"[dim]Upserted events for {source_url[:60]}: {created} new, {updated} updated[/dim]")
        return created, updated

    # ----- settings -----

    def get_settings(self, source_url: str) -> Optional[ExtractionSettings]:
        record = self._settings.get(source_url)
        if record is None:
            return None
        return ExtractionSettings.model_validate(record.settings)

    def get_all_settings(self) -> list[SourceSettingsRecord]:
        return list(self._settings.values())

    def save_settings(self, source_url: str, settings: ExtractionSettings) -> SourceSettingsRecord:
        """Create or replace the settings of a source."""
        now = datetime.now().timestamp()
        existing = self._settings.get(source_url)
        record = SourceSettingsRecord(
            source_url=source_url,
            settings=settings.to_record(),
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self._settings[source_url] = record
        self._save()
        return record

    def set_expected_events(self, source_url: str, expected: Optional[int]) -> ExtractionSettings:
        """Set the operator's expected event count used for scoring."""
        settings = self.get_settings(source_url) or ExtractionSettings()
        settings = settings.model_copy(update={"expected_events": expected or None})
        self.save_settings(source_url, settings)
        return settings

    # ----- run history -----

    def log_scraping_attempt(self, source_url: str, settings_used: dict, event_count: int) -> dict:
        attempt = {
            "id": self._next_id(self._attempts),
            "source_url": source_url,
            "settings_used": settings_used,
            "event_count": event_count,
            "created_at": datetime.now().timestamp(),
        }
        self._attempts.append(attempt)
        self._save()
        return attempt

    def save_score(self, source_url: str, score_type: str, score_data: dict) -> dict:
        score = {
            "id": self._next_id(self._scores),
            "source_url": source_url,
            "score_type": score_type,
            "score_data": score_data,
            "calculated_at": datetime.now().timestamp(),
        }
        self._scores.append(score)
        self._save()
        return score

    def get_scraping_attempts(self, source_url: str) -> list[dict]:
        return [a for a in self._attempts if a["source_url"] == source_url]

    def get_scores(self, source_url: str, score_type: Optional[str] = None) -> list[dict]:
        return [
            s for s in self._scores
            if s["source_url"] == source_url
            and (score_type is None or s["score_type"] == score_type)
        ]

    def stats(self) -> dict:
        """Get store statistics."""
        by_source: dict[str, int] = {}
        for event in self._events:
            by_source[event.source_url] = by_source.get(event.source_url, 0) + 1
        return {
            "events": len(self._events),
            "sources": len(by_source),
            "by_source": by_source,
            "configured_sources": len(self._settings),
            "attempts": len(self._attempts),
            "scores": len(self._scores),
        }
