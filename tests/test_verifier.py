"""Tests for the status verifier.

Mocking strategy:
- ``respx`` patches ``httpx`` at the transport layer so plain HTTP probes make
  no real network calls.
- The Playwright browser is a ``MagicMock`` whose context/page/response
  methods are ``AsyncMock``s; no browser is installed or launched.
"""

from __future__ import annotations

import socket
from typing import Optional
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
import respx
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from linkscan.scanner.models import (
    CONNECTION_REFUSED,
    DNS_ERROR,
    ERROR,
    INVALID,
    TIMEOUT,
    VerificationOutcome,
)
from linkscan.scanner.verifier import (
    ANTI_BOT_LABEL,
    _classify_network_error,
    build_client,
    check_with_browser,
    check_with_http,
    verify,
)

AFFILIATE_URL = "https://partner.example/api/click?id=42"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_browser(
    status: Optional[int] = 200,
    goto_error: Optional[Exception] = None,
    final_url: str = "https://merchant.example/landing",
    redirects: int = 0,
) -> MagicMock:
    """Fake Playwright browser whose page.goto returns *status* (or raises)."""
    request = MagicMock()
    request.redirected_from = None
    for _ in range(redirects):
        previous = MagicMock()
        previous.redirected_from = request.redirected_from
        request.redirected_from = previous

    response = MagicMock()
    response.status = status
    response.status_text = "Forbidden" if status == 403 else "OK"
    response.request = request

    page = MagicMock()
    page.url = final_url
    if goto_error is not None:
        page.goto = AsyncMock(side_effect=goto_error)
    else:
        page.goto = AsyncMock(return_value=response if status is not None else None)

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser._context = context
    browser._page = page
    return browser


# ---------------------------------------------------------------------------
# Short-circuit paths
# ---------------------------------------------------------------------------

class TestNoIo:
    @pytest.mark.parametrize(
        "url",
        [
            "https://www.google-analytics.com/collect?v=2",
            "https://bat.bing.com/action/0",
            "data:image/gif;base64,R0lGOD",
            "blob:https://example.com/uuid",
        ],
    )
    async def test_skipped_urls_never_touch_network_or_browser(self, url: str) -> None:
        browser = _make_browser()
        with patch("linkscan.scanner.verifier.check_with_http", new=AsyncMock()) as http, patch(
            "linkscan.scanner.verifier.check_with_browser", new=AsyncMock()
        ) as nav:
            outcome = await verify(url, browser=browser)

        assert outcome.status == 200
        assert outcome.skip is True
        http.assert_not_called()
        nav.assert_not_called()
        browser.new_context.assert_not_called()

    async def test_valid_mailto(self) -> None:
        outcome = await verify("mailto:a@b.co")
        assert outcome.status == 200

    async def test_invalid_mailto(self) -> None:
        outcome = await verify("mailto:not-an-email")
        assert outcome.status == INVALID

    async def test_tel_and_anchor(self) -> None:
        assert (await verify("tel:+15550100")).status == 200
        assert (await verify("#pricing")).status == 200
        assert (await verify("javascript:void(0)")).status == 200


# ---------------------------------------------------------------------------
# Plain HTTP probe
# ---------------------------------------------------------------------------

class TestHttpProbe:
    async def test_success(self) -> None:
        with respx.mock:
            respx.get("https://example.com/ok").mock(return_value=httpx.Response(200))
            async with build_client() as client:
                outcome = await check_with_http("https://example.com/ok", client)

        assert outcome.status == 200
        assert outcome.status_text == "OK"
        assert outcome.redirect_count == 0
        assert outcome.final_url == "https://example.com/ok"
        assert outcome.checked_with_browser is False

    async def test_error_status_is_captured_not_raised(self) -> None:
        with respx.mock:
            respx.get("https://example.com/missing").mock(return_value=httpx.Response(404))
            async with build_client() as client:
                outcome = await check_with_http("https://example.com/missing", client)

        assert outcome.status == 404
        assert outcome.status_text == "Not Found"

    async def test_server_error_is_captured(self) -> None:
        with respx.mock:
            respx.get("https://example.com/boom").mock(return_value=httpx.Response(503))
            outcome = await verify("https://example.com/boom")

        assert outcome.status == 503

    async def test_redirects_are_followed_and_counted(self) -> None:
        with respx.mock:
            respx.get("https://example.com/old").mock(
                return_value=httpx.Response(301, headers={"Location": "https://example.com/new"})
            )
            respx.get("https://example.com/new").mock(return_value=httpx.Response(200))
            async with build_client() as client:
                outcome = await check_with_http("https://example.com/old", client)

        assert outcome.status == 200
        assert outcome.redirect_count == 1
        assert outcome.final_url == "https://example.com/new"

    async def test_sends_browser_user_agent(self) -> None:
        with respx.mock:
            route = respx.get("https://example.com/ua").mock(return_value=httpx.Response(200))
            await verify("https://example.com/ua")

        assert "Mozilla/5.0" in route.calls.last.request.headers["User-Agent"]

    async def test_affiliate_without_browser_uses_http(self) -> None:
        with respx.mock:
            respx.get(AFFILIATE_URL).mock(return_value=httpx.Response(403))
            outcome = await verify(AFFILIATE_URL)

        assert outcome.status == 403
        assert outcome.treat_as_working is False
        assert outcome.checked_with_browser is False
        assert outcome.is_affiliate is True

    async def test_plain_url_is_not_affiliate(self) -> None:
        with respx.mock:
            respx.get("https://example.com/plain").mock(return_value=httpx.Response(200))
            outcome = await verify("https://example.com/plain")

        assert outcome.is_affiliate is False

    async def test_nonstandard_status_is_recorded(self) -> None:
        url = "https://www.linkedin.com/company/x"
        with respx.mock:
            respx.get(url).mock(return_value=httpx.Response(999))
            outcome = await verify(url)

        assert outcome.status == 999
        assert outcome.final_url == url


class TestNetworkErrors:
    @pytest.mark.parametrize(
        "exc, expected",
        [
            (httpx.ConnectError("[Errno -2] Name or service not known"), DNS_ERROR),
            (httpx.ConnectError("[Errno 111] Connection refused"), CONNECTION_REFUSED),
            (httpx.ConnectTimeout("timed out"), TIMEOUT),
            (httpx.ReadTimeout("read timed out"), TIMEOUT),
            (httpx.RemoteProtocolError("Server disconnected"), ERROR),
        ],
    )
    async def test_taxonomy(self, exc: Exception, expected: str) -> None:
        with respx.mock:
            respx.get("https://broken.example/").mock(side_effect=exc)
            outcome = await verify("https://broken.example/")

        assert outcome.status == expected

    async def test_generic_error_keeps_message(self) -> None:
        with respx.mock:
            respx.get("https://broken.example/").mock(
                side_effect=httpx.RemoteProtocolError("Server disconnected")
            )
            outcome = await verify("https://broken.example/")

        assert outcome.status == ERROR
        assert outcome.status_text == "Server disconnected"

    async def test_timeout_reports_limit_as_latency(self) -> None:
        with respx.mock:
            respx.get("https://slow.example/").mock(side_effect=httpx.ReadTimeout("slow"))
            outcome = await verify("https://slow.example/")

        assert outcome.status_text == "Request timeout"
        assert outcome.response_time > 0

    def test_dns_failure_detected_from_exception_cause(self) -> None:
        exc = httpx.ConnectError("connect failed")
        exc.__cause__ = socket.gaierror(-2, "lookup failed")
        assert _classify_network_error(exc, 10_000).status == DNS_ERROR

    def test_refused_detected_inside_exception_group(self) -> None:
        group = OSError("All connection attempts failed")
        group.exceptions = [ConnectionRefusedError(111, "refused")]
        exc = httpx.ConnectError("connect failed")
        exc.__cause__ = group
        assert _classify_network_error(exc, 10_000).status == CONNECTION_REFUSED

    async def test_too_many_redirects_is_an_error(self) -> None:
        with respx.mock:
            respx.get(url__regex=r"https://loop\.example/.*").mock(
                return_value=httpx.Response(302, headers={"Location": "https://loop.example/again"})
            )
            outcome = await verify("https://loop.example/start")

        assert outcome.status == ERROR


# ---------------------------------------------------------------------------
# Browser check for affiliate links
# ---------------------------------------------------------------------------

class TestBrowserCheck:
    async def test_affiliate_403_is_treated_as_working(self) -> None:
        browser = _make_browser(status=403)
        outcome = await verify(AFFILIATE_URL, browser=browser)

        assert outcome.status == 403
        assert outcome.treat_as_working is True
        assert outcome.is_affiliate is True
        assert outcome.checked_with_browser is True
        assert outcome.status_text == ANTI_BOT_LABEL

    async def test_affiliate_404_is_not_overridden(self) -> None:
        browser = _make_browser(status=404)
        outcome = await verify(AFFILIATE_URL, browser=browser)

        assert outcome.status == 404
        assert outcome.treat_as_working is False
        assert outcome.is_affiliate is True

    async def test_navigation_waits_for_dom_ready_only(self) -> None:
        browser = _make_browser(status=200)
        await verify(AFFILIATE_URL, browser=browser)

        _, kwargs = browser._page.goto.call_args
        assert kwargs["wait_until"] == "domcontentloaded"
        browser._context.close.assert_awaited_once()

    async def test_records_final_url_and_redirect_chain(self) -> None:
        browser = _make_browser(status=200, redirects=2, final_url="https://merchant.example/p")
        outcome = await check_with_browser(AFFILIATE_URL, browser)

        assert outcome.final_url == "https://merchant.example/p"
        assert outcome.redirect_count == 2

    async def test_navigation_timeout_maps_to_timeout(self) -> None:
        browser = _make_browser(goto_error=PlaywrightTimeoutError("Timeout 15000ms exceeded."))
        outcome = await verify(AFFILIATE_URL, browser=browser)

        assert outcome.status == TIMEOUT
        assert outcome.is_affiliate is True
        browser._context.close.assert_awaited_once()

    async def test_unresolvable_host_maps_to_dns_error(self) -> None:
        browser = _make_browser(
            goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED at https://partner.example/")
        )
        outcome = await verify(AFFILIATE_URL, browser=browser)

        assert outcome.status == DNS_ERROR

    async def test_other_navigation_error_is_error(self) -> None:
        browser = _make_browser(goto_error=PlaywrightError("net::ERR_ABORTED"))
        outcome = await verify(AFFILIATE_URL, browser=browser)

        assert outcome.status == ERROR
        assert "ERR_ABORTED" in outcome.status_text

    async def test_nonstandard_browser_status_is_recorded(self) -> None:
        browser = _make_browser(status=999)
        outcome = await verify(AFFILIATE_URL, browser=browser)

        assert outcome.status == 999
        assert outcome.treat_as_working is False

    async def test_status_without_three_digits_is_error(self) -> None:
        browser = _make_browser(status=0)
        outcome = await check_with_browser(AFFILIATE_URL, browser)

        assert outcome.status == ERROR
        assert outcome.status_text == "Unexpected status 0"
        assert outcome.is_affiliate is True
        browser._context.close.assert_awaited_once()

    async def test_missing_response_is_error(self) -> None:
        browser = _make_browser(status=None)
        outcome = await check_with_browser(AFFILIATE_URL, browser)

        assert outcome.status == ERROR

    async def test_non_affiliate_url_ignores_browser(self) -> None:
        browser = _make_browser(status=200)
        with respx.mock:
            respx.get("https://example.com/").mock(return_value=httpx.Response(200))
            outcome = await verify("https://example.com/", browser=browser)

        assert isinstance(outcome, VerificationOutcome)
        assert outcome.checked_with_browser is False
        browser.new_context.assert_not_called()
