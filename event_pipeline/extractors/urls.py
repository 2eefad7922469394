"""URL normalization helpers."""

from urllib.parse import urljoin

from event_pipeline.models import Event


def is_absolute_url(url: str) -> bool:
    return url.lower().startswith(("http://", "https://"))


def resolve_url(href: str, base_url: str) -> str:
    """Resolve ``href`` against ``base_url``; absolute URLs come back unchanged."""
    href = href.strip()
    if is_absolute_url(href):
        return href
    try:
        return urljoin(base_url, href)
    except ValueError:
        return href


def ensure_absolute_event_urls(events: list[Event], base_url: str) -> list[Event]:
    """Rewrite relative event URLs in place. LLM output is not trusted to be absolute."""
    for event in events:
        if event.url and not is_absolute_url(event.url):
            event.url = resolve_url(event.url, base_url)
    return events
