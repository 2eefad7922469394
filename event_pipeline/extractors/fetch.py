"""Headless page renderer with retries and optional iframe aggregation.

Every call gets its own Chromium browser and context; nothing is shared
between concurrent extractions. The browser is closed on every exit path.
"""

from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright
from rich.console import Console

console = Console()

# Realistic desktop Chrome user-agent
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

NAVIGATION_TIMEOUT_MS = 30000
DEFAULT_RETRIES = 3


class RenderFailure(Exception):
    """The browser could not be started or every navigation attempt failed."""

    def __init__(self, url: str, attempts: int, cause: Optional[BaseException] = None):
        self.url = url
        self.attempts = attempts
        self.cause = cause
        reason = f": {cause}" if cause else ""
        plural = "" if attempts == 1 else "s"
        super().__init__(f"Failed to scrape {url} after {attempts} attempt{plural}{reason}")


async def collect_iframe_content(page) -> str:
    """Serialize every non-main frame, wrapped in marker comments."""
    parts = []
    for frame in page.frames:
        if frame == page.main_frame:
            continue
        try:
            frame_html = await frame.content()
        except PlaywrightError as e:
            console.print(f"[yellow]Could not read iframe {frame.url[:60]}: {e}[/yellow]")
            continue
        parts.append(
            f"\n<!-- Begin iframe content from {frame.url} -->\n"
            f"{frame_html}"
            f"\n<!-- End iframe content -->\n"
        )
    return "".join(parts)


async def render_page(
    url: str,
    iterate_iframes: bool = False,
    retries: int = DEFAULT_RETRIES,
    timeout: float = NAVIGATION_TIMEOUT_MS,
) -> str:
    """Return the rendered HTML of a page.

    Navigation waits for DOM content only (not network idle). Failed
    navigations are retried immediately, up to ``retries`` attempts.

    Args:
        url: Page to render
        iterate_iframes: Append the HTML of every iframe after the page source
        retries: Number of navigation attempts (at least one is made)
        timeout: Navigation timeout in milliseconds

    Raises:
        RenderFailure: if the browser failed to start or every attempt failed
    """
    console.print(f"[cyan]Rendering: {url[:60]}...[/cyan]")

    retries = max(1, retries)

    async with async_playwright() as p:
        try:
            browser = await p.chromium.launch(args=["--disable-http2"])
        except PlaywrightError as e:
            console.print(f"[red]Could not start browser for {url[:60]}: {e}[/red]")
            raise RenderFailure(url, 1, e) from e

        try:
            try:
                context = await browser.new_context(
                    user_agent=USER_AGENT,
                    viewport={"width": 1920, "height": 1080},
                )
                page = await context.new_page()
            except PlaywrightError as e:
                console.print(f"[red]Could not open a page for {url[:60]}: {e}[/red]")
                raise RenderFailure(url, 1, e) from e

            last_error: Optional[BaseException] = None
            for attempt in range(1, retries + 1):
                try:
                    await page.goto(url, wait_until="domcontentloaded", timeout=timeout)
                    html = await page.content()
                    if iterate_iframes:
                        html += await collect_iframe_content(page)
                    console.print(f"[dim]Rendered {len(html)} chars from {url[:60]}[/dim]")
                    return html
                except PlaywrightError as e:
                    last_error = e
                    console.print(f"[yellow]Attempt {attempt}/{retries} failed for {url[:60]}: {e}[/yellow]")

            console.print(f"[red]Giving up on {url} after {retries} attempts[/red]")
            raise RenderFailure(url, retries, last_error)
        finally:
            await browser.close()
