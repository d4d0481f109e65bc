"""Bounded breadth-first crawl of a single host.

Each visited page contributes every link, image, stylesheet and script it
references.  Only same-host hyperlinks that are not affiliate redirectors are
followed; everything else is recorded for verification but never traversed.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Iterable, List, Optional, Set
from urllib.parse import urlparse

from playwright.async_api import Browser, Error as PlaywrightError

from linkscan.config import settings
from linkscan.logger import get_logger
from linkscan.scanner.browser import RenderedPage, launch_browser, new_context
from linkscan.scanner.classifier import is_affiliate_link, is_same_host
from linkscan.scanner.models import Reference
from linkscan.scanner.patterns import DEFAULT_PATTERNS

logger = get_logger(__name__)

_KINDS = {"link", "image", "css", "script"}


@dataclass
class CrawlResult:
    pages: List[str] = field(default_factory=list)
    references: List[Reference] = field(default_factory=list)


def to_references(page_url: str, raw: Iterable[Dict[str, Any]]) -> List[Reference]:
    """Turn the in-page extraction payload into :class:`Reference` objects.

    Entries without a URL or with an unknown kind are dropped.
    """
    refs: List[Reference] = []
    for item in raw:
        url = (item.get("url") or "").strip()
        kind = item.get("kind")
        if not url or kind not in _KINDS:
            continue
        refs.append(
            Reference(
                page_url=page_url,
                url=url,
                text=item.get("text") or "No text",
                kind=kind,
                context=item.get("context") or "Unknown",
            )
        )
    return refs


def next_targets(
    references: Iterable[Reference],
    base_host: str,
    visited: Set[str],
    queued: Iterable[str],
) -> List[str]:
    """Return hyperlink targets worth crawling, in discovery order.

    A target qualifies when it is a ``link`` reference on *base_host*, is not an
    affiliate redirector, and has not been visited or queued already.
    """
    seen = set(queued)
    targets: List[str] = []
    for ref in references:
        if ref.kind != "link":
            continue
        if is_affiliate_link(ref.url):
            continue
        if not is_same_host(ref.url, base_host):
            continue
        if ref.url in visited or ref.url in seen:
            continue
        seen.add(ref.url)
        targets.append(ref.url)
    return targets


async def collect_references(browser: Browser, page_url: str) -> List[Reference]:
    """Load *page_url* in its own tab, wait for network idle, and extract references."""
    context = await new_context(browser)
    try:
        page = await context.new_page()
        await page.goto(
            page_url,
            wait_until="networkidle",
            timeout=settings.navigation_timeout_ms,
        )
        raw = await RenderedPage(page).query_references(list(DEFAULT_PATTERNS.cta_classes))
        return to_references(page_url, raw)
    finally:
        await context.close()


async def crawl_with_browser(browser: Browser, root_url: str, max_pages: int) -> CrawlResult:
    """Run the BFS using an already-launched *browser*."""
    base_host = urlparse(root_url).hostname or ""
    visited: Set[str] = set()
    frontier: Deque[str] = deque([root_url])
    result = CrawlResult()

    while frontier and len(visited) < max_pages:
        current = frontier.popleft()
        if current in visited:
            continue
        visited.add(current)
        result.pages.append(current)
        logger.info(f"Crawling [{len(visited)}/{max_pages}]: {current}")

        try:
            refs = await collect_references(browser, current)
        except PlaywrightError as exc:
            logger.warning(f"Failed to crawl {current}: {exc}")
            continue

        result.references.extend(refs)
        frontier.extend(next_targets(refs, base_host, visited, frontier))

    logger.info(
        f"Crawled {len(result.pages)} pages, found {len(result.references)} references"
    )
    return result


async def crawl(root_url: str, max_pages: Optional[int] = None) -> CrawlResult:
    """Crawl *root_url*'s host breadth-first, visiting at most *max_pages* pages.

    The crawl browser is launched here and closed before returning, whether
    the crawl finished or raised.
    """
    limit = max_pages if max_pages is not None else settings.max_pages
    async with launch_browser() as browser:
        return await crawl_with_browser(browser, root_url, limit)
