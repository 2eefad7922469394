"""Data models for the event extraction pipeline."""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_CATEGORY_SET = (
    "Familienleben, Aktivitäten, Veranstaltungen, Essen/Rezepte, Münsterland, "
    "Kultur/Lifestyle, Gesundheit, Reisen, Einkaufen, Gemeinschaft, Tipps & Ratgeber"
)
FALLBACK_CATEGORY = "Andere"  # Used by the model when no category applies
DEFAULT_GPT_MODEL = "gpt-4o-mini"


class Event(BaseModel):
    """One event as extracted from a page (before persistence)."""

    title: str = ""
    description: str = ""
    url: str = ""  # May be relative until resolved against the source URL
    category: str = ""
    date: str = ""  # ISO-8601 when the model could derive one, free text otherwise

    class Config:
        extra = "ignore"

    @field_validator("title", "description", "url", "category", "date", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str:
        """LLM output: null becomes "", numbers become strings, nested data is rejected."""
        if value is None:
            return ""
        if isinstance(value, (dict, list)):
            raise ValueError("expected a plain value")
        return str(value)


# Integer settings where zero/negative means "not configured"
_POSITIVE_INT_FIELDS = {
    "min_text_length", "minTextLength",
    "max_text_length", "maxTextLength",
    "max_combined_size", "maxCombinedSize",
    "expected_events", "expectedEvents",
}


def _is_unset(key: str, value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if key in _POSITIVE_INT_FIELDS:
        try:
            return int(value) <= 0
        except (TypeError, ValueError):
            return True
    return False


class ExtractionSettings(BaseModel):
    """Per-source extraction configuration.

    Accepts both the snake_case field names and the camelCase names used by
    stored settings records (``minTextLength``, ``gptModel``...). Blank strings
    and non-positive sizes fall back to the defaults.
    """

    min_text_length: int = Field(default=25, alias="minTextLength")
    max_text_length: int = Field(default=4000, alias="maxTextLength")
    max_combined_size: int = Field(default=4000, alias="maxCombinedSize")
    category_set: str = Field(default=DEFAULT_CATEGORY_SET, alias="categorySet")
    custom_prompt: Optional[str] = Field(default=None, alias="customPrompt")
    gpt_model: str = Field(default=DEFAULT_GPT_MODEL, alias="gptModel")
    show_events_without_links: bool = Field(default=False, alias="showEventsWithoutLinks")
    iterate_iframes: bool = Field(default=False, alias="iterateIframes")
    expected_events: Optional[int] = Field(default=None, alias="expectedEvents")

    class Config:
        extra = "ignore"
        populate_by_name = True

    @model_validator(mode="before")
    @classmethod
    def drop_unset_values(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return {k: v for k, v in data.items() if not _is_unset(k, v)}

    def merged_with(self, overrides: Optional[dict]) -> "ExtractionSettings":
        """Return a copy with the (possibly partial) overrides applied."""
        if not overrides:
            return self.model_copy()
        data = self.model_dump()
        cleaned = ExtractionSettings.model_validate(overrides).model_dump(exclude_unset=True)
        data.update(cleaned)
        return ExtractionSettings.model_validate(data)

    def to_record(self) -> dict:
        """camelCase dict, the shape persisted alongside attempts and scores."""
        return self.model_dump(by_alias=True)


class ScoreRecord(BaseModel):
    """Quality score of one run against the operator-supplied expected count."""

    accuracy: float
    completeness: float
    score: float
    scraped: int
    expected: int
    settings: dict = Field(default_factory=dict)  # Settings snapshot used for the run


class ExtractionResult(BaseModel):
    """Outcome of one full extraction run for a source URL."""

    source_url: str
    events: list[Event] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    chunk_count: int = 0
    used_fallback: bool = False  # True if the unmerged second pass ran
    score: Optional[ScoreRecord] = None
