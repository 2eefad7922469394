"""Shared test fixtures and configuration."""

import json

import pytest

from event_pipeline.enrichers.schema import NO_EVENTS_SENTINEL, SUMMARY_TEMPERATURE
from event_pipeline.extractors.event_store import EventStore
from event_pipeline.models import Event, ExtractionSettings

BASE_URL = "https://www.muenster.de/veranstaltungen/"

SAMPLE_HTML = """<html>
<head>
  <script>var tracking = "Stadtfest";</script>
  <style>.event { color: red; }</style>
</head>
<body>
  <nav><a href="/home">Startseite Navigation mit vielen Menüeinträgen</a></nav>
  <main>
    <div class="event">
      <h2>Stadtfest Münster — 15.06.2025</h2>
      <p>Live-Musik und Stände in der Altstadt.</p>
      <a href="/events/stadtfest">Mehr</a>
    </div>
    <div class="event">
      <h2>Flohmarkt am Hafen — 22.06.2025</h2>
      <p>Trödel und Antiquitäten am Kreativkai.</p>
      <a href="https://hafen.example.org/flohmarkt">Details</a>
    </div>
    <div class="teaser">
      <p>Dieser Absatz hat keinen Link, aber genug Text für einen Chunk.</p>
    </div>
  </main>
  <footer><a href="/impressum">Impressum und Datenschutz und Kontakt</a></footer>
</body>
</html>"""

STADTFEST = {
    "title": "Stadtfest Münster",
    "description": "Live-Musik und Stände in der Altstadt",
    "url": "/events/stadtfest",
    "category": "Veranstaltungen",
    "date": "2025-06-15",
}

FLOHMARKT = {
    "title": "Flohmarkt am Hafen",
    "description": "Trödel und Antiquitäten am Kreativkai",
    "url": "https://hafen.example.org/flohmarkt",
    "category": "Einkaufen",
    "date": "2025-06-22",
}


def events_json(*events: dict) -> str:
    return json.dumps({"events": list(events)})


class FakeLLM:
    """Stands in for ``complete(model, prompt, temperature)``.

    Summary calls (temperature 0.7) go to ``summarize(prompt)``, extraction
    calls to ``extract(prompt)``. Either responder may raise.
    """

    def __init__(self, summarize=None, extract=None):
        self.summarize = summarize or (lambda prompt: NO_EVENTS_SENTINEL)
        self.extract = extract or (lambda prompt: events_json())
        self.calls: list[tuple[str, float, str]] = []

    async def __call__(self, model: str, prompt: str, temperature: float) -> str:
        self.calls.append((model, temperature, prompt))
        if temperature == SUMMARY_TEMPERATURE:
            return self.summarize(prompt)
        return self.extract(prompt)

    @property
    def summary_calls(self) -> list[str]:
        return [p for _, t, p in self.calls if t == SUMMARY_TEMPERATURE]

    @property
    def extraction_calls(self) -> list[str]:
        return [p for _, t, p in self.calls if t != SUMMARY_TEMPERATURE]


def summarize_by_content(prompt: str) -> str:
    """One summary per event found in the chunk text."""
    chunk = prompt.split("Here's the text:\n", 1)[-1]
    lines = []
    if "Stadtfest" in chunk:
        lines.append("Stadtfest Münster am 15.06.2025, /events/stadtfest")
    if "Flohmarkt" in chunk:
        lines.append("Flohmarkt am Hafen am 22.06.2025, https://hafen.example.org/flohmarkt")
    return "\n".join(lines) or NO_EVENTS_SENTINEL


def extract_by_content(prompt: str) -> str:
    summary = prompt.split("Summary:\n", 1)[-1]
    found = []
    if "Stadtfest" in summary:
        found.append(STADTFEST)
    if "Flohmarkt" in summary:
        found.append(FLOHMARKT)
    return events_json(*found)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host configuration out of the tests."""
    for name in (
        "SCORING_ACCURACY_WEIGHT",
        "SCORING_COMPLETENESS_WEIGHT",
        "LLM_MAX_CONCURRENT",
        "LLM_TIMEOUT_SECONDS",
        "OPENAI_BASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def base_url() -> str:
    return BASE_URL


@pytest.fixture
def sample_html() -> str:
    return SAMPLE_HTML


@pytest.fixture
def split_settings() -> ExtractionSettings:
    """Settings small enough that each event item becomes its own chunk."""
    return ExtractionSettings(max_text_length=120)


@pytest.fixture
def sample_events() -> list[Event]:
    return [Event(**STADTFEST), Event(**FLOHMARKT)]


@pytest.fixture
def store(tmp_path) -> EventStore:
    return EventStore(tmp_path / "event_store.json")


@pytest.fixture
def fake_llm() -> FakeLLM:
    """LLM that finds the sample events in whatever chunk it is shown."""
    return FakeLLM(summarize=summarize_by_content, extract=extract_by_content)
