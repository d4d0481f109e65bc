"""Evidence capture: screenshot a page with the offending element highlighted.

Capture is best-effort.  Whatever goes wrong between opening the tab and
encoding the PNG, the caller gets ``None`` and the scan carries on.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from playwright.async_api import Browser, Error as PlaywrightError

from linkscan.config import VIEWPORT, settings
from linkscan.logger import get_logger
from linkscan.scanner.browser import RenderedPage, new_context

logger = get_logger(__name__)


async def capture(
    page_url: str,
    target_label: str,
    target_url: str,
    browser: Browser,
) -> Optional[bytes]:
    """Open *page_url*, highlight the element for *target_url*, and screenshot it.

    The element is located by label text first, then by URL.  When nothing
    matches, a banner is pinned to the top of the viewport instead so the
    screenshot still documents the failure.

    Args:
        page_url: The page on which the broken reference was found.
        target_label: The reference's display text or alt text.
        target_url: The broken target URL.
        browser: The screenshot browser owned by the caller.

    Returns:
        PNG bytes of the viewport, or ``None`` if any step failed.
    """
    logger.info(f"Capturing evidence for {target_label!r} -> {target_url} on {page_url}")
    context = None
    try:
        context = await new_context(
            browser,
            viewport=VIEWPORT,
            extra_http_headers={"Cache-Control": "no-cache", "Pragma": "no-cache"},
        )
        page = await context.new_page()

        try:
            await page.goto(
                page_url,
                wait_until="domcontentloaded",
                timeout=settings.navigation_timeout_ms,
            )
        except PlaywrightError as exc:
            # Partially rendered pages are still usable evidence.
            logger.warning(f"Navigation to {page_url} did not finish, continuing: {exc}")

        await asyncio.sleep(settings.settle_delay)

        rendered = RenderedPage(page)
        await rendered.inject_highlight_style()
        strategy = await rendered.find_matching_element(target_label, target_url)
        if strategy is None:
            await rendered.show_banner(target_label)
            strategy = "banner"
        logger.info(f"Highlight strategy for {target_url}: {strategy}")

        await asyncio.sleep(settings.highlight_delay)

        screenshot = await page.screenshot(full_page=False, type="png")
        logger.info(f"Screenshot captured ({round(len(screenshot) / 1024)} KB)")
        return screenshot
    except Exception as exc:
        logger.warning(f"Evidence capture failed for {target_url} on {page_url}: {exc}")
        return None
    finally:
        if context is not None:
            try:
                await context.close()
            except PlaywrightError as exc:
                logger.warning(f"Failed to close capture tab for {page_url}: {exc}")
