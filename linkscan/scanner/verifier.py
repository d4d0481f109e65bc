"""Status verification: resolve one URL to a :class:`VerificationOutcome`.

Plain URLs get a lightweight ``httpx`` GET.  Affiliate redirectors, which
routinely sit behind anti-bot walls, are opened in a real browser tab instead
when one is available.  Transport failures become sentinel statuses; nothing
in this module raises on a bad link, and nothing retries.
"""

from __future__ import annotations

import socket
import time
from typing import Iterator, List, Optional

import httpx
from playwright.async_api import Browser, Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from linkscan.config import USER_AGENT, settings
from linkscan.logger import get_logger
from linkscan.scanner.browser import new_context
from linkscan.scanner.classifier import (
    classify_for_skip,
    classify_special_scheme,
    is_affiliate_link,
)
from linkscan.scanner.models import (
    CONNECTION_REFUSED,
    DNS_ERROR,
    ERROR,
    TIMEOUT,
    VerificationOutcome,
    is_http_status,
)

logger = get_logger(__name__)

_DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

ANTI_BOT_LABEL = "Anti-bot protection (link works in browsers)"

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
    "err_name_not_resolved",
)
_REFUSED_MARKERS = ("connection refused", "err_connection_refused", "errno 111", "errno 61")


def build_client() -> httpx.AsyncClient:
    """Return the shared HTTP client used for plain status probes."""
    return httpx.AsyncClient(
        headers=_DEFAULT_HEADERS,
        timeout=settings.http_timeout,
        follow_redirects=True,
        max_redirects=settings.max_redirects,
    )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _response_outcome(status: int, status_text: str, **fields) -> VerificationOutcome:
    """Record a received status; codes that are not three digits become ``ERROR``."""
    if not is_http_status(status):
        return VerificationOutcome(
            status=ERROR, status_text=f"Unexpected status {status}", **fields
        )
    return VerificationOutcome(status=status, status_text=status_text, **fields)


# ---------------------------------------------------------------------------
# Error taxonomy
# ---------------------------------------------------------------------------

def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Walk ``__cause__``/``__context__`` links and exception-group members."""
    seen = set()
    pending: List[BaseException] = [exc]
    while pending:
        current = pending.pop(0)
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        pending.extend(getattr(current, "exceptions", ()) or ())
        nested = current.__cause__ or current.__context__
        if nested is not None:
            pending.append(nested)


def _classify_network_error(exc: BaseException, timeout_ms: int) -> VerificationOutcome:
    """Map a transport failure onto the sentinel taxonomy."""
    for err in _exception_chain(exc):
        if isinstance(err, (httpx.TimeoutException, PlaywrightTimeoutError)):
            return VerificationOutcome(
                status=TIMEOUT,
                status_text="Request timeout",
                response_time=timeout_ms,
            )
        if isinstance(err, socket.gaierror):
            return VerificationOutcome(status=DNS_ERROR, status_text="Domain not found")
        if isinstance(err, ConnectionRefusedError):
            return VerificationOutcome(status=CONNECTION_REFUSED, status_text="Connection refused")

    message = str(exc).lower()
    if any(marker in message for marker in _DNS_MARKERS):
        return VerificationOutcome(status=DNS_ERROR, status_text="Domain not found")
    if any(marker in message for marker in _REFUSED_MARKERS):
        return VerificationOutcome(status=CONNECTION_REFUSED, status_text="Connection refused")
    return VerificationOutcome(status=ERROR, status_text=str(exc) or type(exc).__name__)


# ---------------------------------------------------------------------------
# Probes
# ---------------------------------------------------------------------------

async def check_with_http(url: str, client: httpx.AsyncClient) -> VerificationOutcome:
    """GET *url*, following up to ``settings.max_redirects`` hops.

    Every HTTP status is captured as data; only transport failures take the
    error path.
    """
    start = time.monotonic()
    try:
        response = await client.get(url)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        return _classify_network_error(exc, settings.http_timeout_ms)

    return _response_outcome(
        response.status_code,
        response.reason_phrase,
        response_time=_elapsed_ms(start),
        redirect_count=len(response.history),
        final_url=str(response.url),
    )


async def check_with_browser(url: str, browser: Browser) -> VerificationOutcome:
    """Open *url* in a fresh tab and wait for DOM-ready only."""
    context = None
    try:
        context = await new_context(browser)
        page = await context.new_page()
        start = time.monotonic()
        response = await page.goto(
            url,
            wait_until="domcontentloaded",
            timeout=settings.browser_check_timeout_ms,
        )
        elapsed = _elapsed_ms(start)
        if response is None:
            outcome = VerificationOutcome(status=ERROR, status_text="No response received")
        else:
            redirects = 0
            request = response.request.redirected_from
            while request is not None:
                redirects += 1
                request = request.redirected_from
            outcome = _response_outcome(
                response.status,
                response.status_text,
                response_time=elapsed,
                redirect_count=redirects,
                final_url=page.url,
            )
    except PlaywrightError as exc:
        outcome = _classify_network_error(exc, settings.browser_check_timeout_ms)
    finally:
        if context is not None:
            try:
                await context.close()
            except PlaywrightError as exc:
                logger.warning(f"Failed to close verification tab for {url}: {exc}")

    outcome.checked_with_browser = True
    outcome.is_affiliate = True
    return outcome


async def verify(
    url: str,
    browser: Optional[Browser] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> VerificationOutcome:
    """Resolve *url* to a verification outcome.

    Args:
        url: Absolute target URL (or a ``mailto:``/``tel:``/``data:`` etc. reference).
        browser: Optional browser used for affiliate-class URLs.
        client: Optional shared HTTP client; a throwaway one is created when
            omitted.

    Returns:
        The outcome.  Never raises for an unreachable or failing link.
    """
    decision = classify_for_skip(url)
    if decision.skip:
        return decision.outcome

    special = classify_special_scheme(url)
    if special is not None:
        return special

    if browser is not None and is_affiliate_link(url):
        logger.info(f"Checking affiliate link with browser: {url}")
        outcome = await check_with_browser(url, browser)
        if outcome.status == 403:
            logger.info(f"403 on affiliate link {url} treated as anti-bot protection")
            outcome.treat_as_working = True
            outcome.status_text = ANTI_BOT_LABEL
        return outcome

    if client is not None:
        outcome = await check_with_http(url, client)
    else:
        async with build_client() as own_client:
            outcome = await check_with_http(url, own_client)
    outcome.is_affiliate = is_affiliate_link(url)
    return outcome
