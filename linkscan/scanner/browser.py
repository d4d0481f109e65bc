"""Browser lifecycle and the rendered-page capability used by the scanner.

``launch_browser`` is the only place a Chromium process is started; it is an
async context manager so every phase that needs a browser acquires and
releases it in one ``async with`` block.

``RenderedPage`` wraps a Playwright page and exposes the two DOM operations
the crawler and the evidence capturer need, so neither of them touches
JavaScript or selectors directly.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from playwright.async_api import Browser, BrowserContext, Error as PlaywrightError, Page
from playwright.async_api import async_playwright

from linkscan.config import CHROMIUM_ARGS, USER_AGENT, settings
from linkscan.exceptions import BrowserLaunchError
from linkscan.logger import get_logger

logger = get_logger(__name__)

HIGHLIGHT_CLASS = "broken-link-highlight"
HIGHLIGHT_STYLE_ID = "broken-link-style"
BANNER_ID = "broken-link-banner"

# ---------------------------------------------------------------------------
# In-page scripts
# ---------------------------------------------------------------------------

_QUERY_REFERENCES_JS = """(ctaClasses) => {
    const results = [];
    const elements = document.querySelectorAll('a[href], img[src], link[href], script[src]');
    elements.forEach(el => {
        let url, text, kind;
        if (el.tagName === 'A') {
            url = el.href;
            text = (el.innerText || '').trim() || el.getAttribute('aria-label') || 'No text';
            kind = 'link';
        } else if (el.tagName === 'IMG') {
            url = el.src;
            text = el.alt || 'Image';
            kind = 'image';
        } else if (el.tagName === 'LINK') {
            url = el.href;
            text = 'Stylesheet';
            kind = 'css';
        } else {
            url = el.src;
            text = 'Script';
            kind = 'script';
        }
        if (!url) return;

        let context = 'Unknown';
        const parent = el.closest('header, nav, footer, main, section, aside, div');
        if (parent) {
            const classes = typeof parent.className === 'string' ? parent.className.trim() : '';
            const id = parent.id || '';
            context = parent.tagName.toLowerCase()
                + (id ? '#' + id : '')
                + (classes ? '.' + classes.split(/\\s+/)[0] : '');
        }
        if (el.classList && ctaClasses.some(c => el.classList.contains(c))) {
            context += ' - CTA button';
        }
        results.push({ url, text, kind, context });
    });
    return results;
}"""

_INJECT_STYLE_JS = """([styleId, cls]) => {
    document.querySelectorAll('#' + styleId).forEach(s => s.remove());
    document.querySelectorAll('.' + cls).forEach(el => el.classList.remove(cls));
    const style = document.createElement('style');
    style.id = styleId;
    style.textContent = `
      .${cls} {
        outline: 6px solid #ff0000 !important;
        outline-offset: 4px !important;
        background-color: rgba(255, 0, 0, 0.3) !important;
        position: relative !important;
        box-shadow: 0 0 40px rgba(255, 0, 0, 1) !important;
        z-index: 999998 !important;
      }
      .${cls}::before {
        content: "BROKEN LINK" !important;
        display: block !important;
        position: absolute !important;
        top: -45px !important;
        left: 0 !important;
        background: #ff0000 !important;
        color: #ffffff !important;
        padding: 12px 20px !important;
        font: bold 16px Arial, sans-serif !important;
        border-radius: 8px !important;
        z-index: 999999 !important;
        white-space: nowrap !important;
      }`;
    (document.head || document.documentElement).appendChild(style);
}"""

_FIND_AND_HIGHLIGHT_JS = """([searchText, searchUrl, cls, minPartial]) => {
    const elements = Array.from(document.querySelectorAll('a, img[src], button, [role="button"]'));
    const needle = (searchText || '').toLowerCase();
    const textOf = el => (el.innerText || el.alt || el.textContent || '').trim().toLowerCase();
    const mark = (el, strategy) => {
        el.classList.add(cls);
        el.scrollIntoView({ behavior: 'auto', block: 'center' });
        return strategy;
    };

    for (const el of elements) {
        const t = textOf(el);
        if (t && t === needle) return mark(el, 'exact-text');
    }
    if (needle.length > minPartial) {
        for (const el of elements) {
            const t = textOf(el);
            if (t && t.includes(needle)) return mark(el, 'partial-text');
        }
    }
    if (searchUrl) {
        const bare = searchUrl.split('?')[0];
        for (const el of elements) {
            const elUrl = el.href || el.src || '';
            if (elUrl && (elUrl.includes(bare) || searchUrl.includes(elUrl))) {
                return mark(el, 'url-match');
            }
        }
    }
    return null;
}"""

_BANNER_JS = """([bannerId, label]) => {
    document.querySelectorAll('#' + bannerId).forEach(b => b.remove());
    const banner = document.createElement('div');
    banner.id = bannerId;
    banner.style.cssText = [
        'position: fixed', 'top: 20px', 'left: 50%', 'transform: translateX(-50%)',
        'background: #ff0000', 'color: #ffffff', 'padding: 20px 30px',
        'border-radius: 10px', 'font: bold 18px Arial, sans-serif',
        'z-index: 999999', 'box-shadow: 0 5px 20px rgba(0,0,0,0.6)',
        'text-align: center', 'max-width: 80%',
    ].map(rule => rule + ' !important').join('; ');
    const title = document.createElement('div');
    title.textContent = 'BROKEN LINK: "' + label + '"';
    const detail = document.createElement('span');
    detail.style.cssText = 'font-size: 14px; font-weight: normal; margin-top: 8px; display: block;';
    detail.textContent = 'Link not visible on page (may be hidden or loaded dynamically)';
    banner.appendChild(title);
    banner.appendChild(detail);
    const body = document.body || document.documentElement;
    body.insertBefore(banner, body.firstChild);
}"""


# ---------------------------------------------------------------------------
# Browser lifecycle
# ---------------------------------------------------------------------------

@asynccontextmanager
async def launch_browser() -> AsyncIterator[Browser]:
    """Start a headless Chromium for one scan phase and always close it.

    Raises:
        BrowserLaunchError: If Playwright cannot start the browser process.
    """
    async with async_playwright() as pw:
        try:
            browser = await pw.chromium.launch(headless=settings.headless, args=CHROMIUM_ARGS)
        except PlaywrightError as exc:
            raise BrowserLaunchError(f"Could not launch Chromium: {exc}") from exc
        try:
            yield browser
        finally:
            await browser.close()


async def new_context(browser: Browser, **overrides: Any) -> BrowserContext:
    """Open an isolated context (own cache and cookies) with the scanner's UA."""
    options: Dict[str, Any] = {"user_agent": USER_AGENT}
    options.update(overrides)
    return await browser.new_context(**options)


# ---------------------------------------------------------------------------
# Rendered page capability
# ---------------------------------------------------------------------------

class RenderedPage:
    """DOM queries against a page that has already been navigated."""

    def __init__(self, page: Page) -> None:
        self.page = page

    async def query_references(self, cta_classes: List[str]) -> List[Dict[str, str]]:
        """Return ``{url, text, kind, context}`` for every link/img/stylesheet/script."""
        return await self.page.evaluate(_QUERY_REFERENCES_JS, cta_classes)

    async def inject_highlight_style(self) -> None:
        await self.page.evaluate(_INJECT_STYLE_JS, [HIGHLIGHT_STYLE_ID, HIGHLIGHT_CLASS])

    async def find_matching_element(
        self, text: str, url: str, min_partial: int = 3
    ) -> Optional[str]:
        """Highlight the first element matching *text* or *url*.

        Tries an exact case-insensitive text/alt match, then a substring match
        (only when *text* is longer than *min_partial*), then an href/src
        match that ignores the query string.

        Returns:
            The name of the strategy that matched, or ``None``.
        """
        return await self.page.evaluate(
            _FIND_AND_HIGHLIGHT_JS, [text, url, HIGHLIGHT_CLASS, min_partial]
        )

    async def show_banner(self, text: str) -> None:
        await self.page.evaluate(_BANNER_JS, [BANNER_ID, text])
