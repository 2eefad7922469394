"""Split rendered HTML into bounded text chunks for the LLM.

A breadth-first walk from <body> looks for the largest subtrees whose
flattened text fits in ``[min_length, max_length]`` and (by default) that
contain at least one outbound link: an event listing item almost always
links somewhere. Each chunk is the node's text followed by a
``Links found:`` block of absolute URLs.
"""

import re
from collections import deque
from typing import Optional

from bs4 import BeautifulSoup, Tag
from rich.console import Console

from event_pipeline.extractors.urls import resolve_url
from event_pipeline.models import ExtractionSettings

console = Console()

# Tags that never carry event content
STRIP_TAGS = ["script", "style", "meta", "link", "nav", "footer"]

CHUNK_SEPARATOR = "\n\n"


def flatten_text(node) -> str:
    """Visible text of a node with whitespace collapsed."""
    return re.sub(r"\s+", " ", node.get_text()).strip()


def node_links(node: Tag) -> list[str]:
    """Raw hrefs of descendant anchors, skipping "#" placeholders."""
    return [
        a["href"] for a in node.find_all("a", href=True)
        if a["href"] != "#"
    ]


def child_tags(node: Tag) -> list[Tag]:
    return [child for child in node.children if isinstance(child, Tag)]


def gather_candidate_nodes(
    root: Tag,
    min_length: int,
    max_length: int,
    include_linkless: bool = False,
) -> list[Tag]:
    """Breadth-first search for nodes that can stand alone as one chunk."""
    queue = deque([root])
    candidates = []

    while queue:
        node = queue.popleft()
        length = len(flatten_text(node))

        if length < min_length:
            # Too small on its own, maybe a child is a link container
            queue.extend(child_tags(node))
            continue

        if length <= max_length:
            if not include_linkless and not node_links(node):
                queue.extend(child_tags(node))
                continue
            candidates.append(node)
        else:
            # Too big, split further
            queue.extend(child_tags(node))

    return candidates


def node_to_chunk(node: Tag, base_url: str, include_linkless: bool = False) -> str:
    """Render one candidate node as chunk text plus its resolved links."""
    text = flatten_text(node)
    if not text:
        return ""

    links = [resolve_url(href, base_url) for href in node_links(node)]
    if links:
        return text + "\nLinks found:\n" + "\n".join(links)
    if include_linkless:
        return text + "\nLink found:\n" + base_url
    return text


def segment_html(
    html: str,
    base_url: str,
    min_length: int = 25,
    max_length: int = 4000,
    include_linkless: bool = False,
) -> list[str]:
    """Convert HTML into ordered, size-bounded chunks.

    Falls back to a single chunk holding the whole document text if there
    is no <body> or no node qualifies.
    """
    soup = BeautifulSoup(html, "lxml")
    for tag in soup.find_all(STRIP_TAGS):
        tag.extract()

    body = soup.body
    if body is None:
        console.print("[dim]No <body> found, using whole document text[/dim]")
        return [flatten_text(soup)]

    nodes = gather_candidate_nodes(body, min_length, max_length, include_linkless)
    console.print(f"[dim]Found {len(nodes)} candidate nodes[/dim]")

    chunks = [node_to_chunk(node, base_url, include_linkless) for node in nodes]
    chunks = [c for c in chunks if c]
    if not chunks:
        return [flatten_text(body)]

    total = sum(len(c) for c in chunks)
    console.print(
        f"[dim]Created {len(chunks)} chunks "
        f"({total} chars, avg {total / len(chunks):.0f})[/dim]"
    )
    return chunks


def combine_chunks(chunks: list[str], max_size: int) -> list[str]:
    """Greedily join consecutive chunks while the result fits in ``max_size``.

    Order is preserved and chunks are never split; a single chunk already
    longer than ``max_size`` passes through on its own.
    """
    combined: list[str] = []
    current: Optional[str] = None

    for chunk in chunks:
        if not chunk:
            continue
        if current is None:
            current = chunk
        elif len(current) + len(CHUNK_SEPARATOR) + len(chunk) <= max_size:
            current += CHUNK_SEPARATOR + chunk
        else:
            combined.append(current)
            current = chunk

    if current is not None and current.strip():
        combined.append(current)
    return combined


def chunk_html(
    html: str,
    base_url: str,
    settings: ExtractionSettings,
    merge: bool = True,
) -> list[str]:
    """Segment HTML with the source's settings, optionally combining chunks."""
    chunks = segment_html(
        html,
        base_url,
        min_length=settings.min_text_length,
        max_length=settings.max_text_length,
        include_linkless=settings.show_events_without_links,
    )
    if not merge:
        console.print(f"[dim]Skipping chunk merging, {len(chunks)} chunks[/dim]")
        return chunks

    merged = combine_chunks(chunks, settings.max_combined_size)
    console.print(f"[dim]Merged {len(chunks)} chunks into {len(merged)}[/dim]")
    return merged
