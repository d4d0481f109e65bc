"""Link classification: pure functions, no I/O.

Decides which URLs never reach the network (tracking beacons, inline content,
special schemes), which ones are affiliate redirectors, and how a bare status
maps onto the issue taxonomy when no richer analysis is available.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from linkscan.scanner.models import (
    CONNECTION_REFUSED,
    DNS_ERROR,
    ERROR,
    INVALID,
    TIMEOUT,
    Priority,
    Status,
    VerificationOutcome,
)
from linkscan.scanner.patterns import DEFAULT_PATTERNS, PatternTable, matches_any


@dataclass(frozen=True)
class SkipDecision:
    skip: bool
    outcome: Optional[VerificationOutcome] = None


_NO_SKIP = SkipDecision(skip=False)


# ---------------------------------------------------------------------------
# Short-circuit classification
# ---------------------------------------------------------------------------

def is_tracking_pixel(url: str, patterns: PatternTable = DEFAULT_PATTERNS) -> bool:
    return matches_any(url, patterns.tracking)


def is_affiliate_link(url: str, patterns: PatternTable = DEFAULT_PATTERNS) -> bool:
    """Return ``True`` when *url* looks like a click-tracking / affiliate redirector."""
    return matches_any(url, patterns.affiliate)


def classify_for_skip(url: str, patterns: PatternTable = DEFAULT_PATTERNS) -> SkipDecision:
    """Return a synthetic skip outcome for beacons and inline content."""
    if is_tracking_pixel(url, patterns):
        return SkipDecision(
            skip=True,
            outcome=VerificationOutcome(status=200, status_text="Tracking Pixel", skip=True),
        )
    if url.lower().startswith(patterns.inline_schemes):
        return SkipDecision(
            skip=True,
            outcome=VerificationOutcome(status=200, status_text="Inline Content", skip=True),
        )
    return _NO_SKIP


def classify_special_scheme(
    url: str, patterns: PatternTable = DEFAULT_PATTERNS
) -> Optional[VerificationOutcome]:
    """Resolve ``mailto:``, ``tel:``, ``javascript:`` and ``#`` targets without I/O.

    Returns ``None`` for anything that needs a real network check.
    """
    if url.startswith("mailto:"):
        if patterns.email.match(url):
            return VerificationOutcome(status=200, status_text="Valid Email")
        return VerificationOutcome(status=INVALID, status_text="Malformed Email")

    if url.startswith("tel:"):
        return VerificationOutcome(status=200, status_text="Phone Link")

    if url.startswith(patterns.internal_prefixes):
        return VerificationOutcome(status=200, status_text="Internal Reference")

    return None


def is_same_host(url: str, hostname: str) -> bool:
    try:
        return urlparse(url).hostname == hostname
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# Status predicates
# ---------------------------------------------------------------------------

def _is_http(status: Status) -> bool:
    return isinstance(status, int) and not isinstance(status, bool)


def is_success_status(status: Status) -> bool:
    """2xx, plus 304 (cached content is a working link)."""
    if _is_http(status) and 200 <= status < 300:
        return True
    return status == 304


def is_redirect_status(status: Status) -> bool:
    return _is_http(status) and 300 <= status < 400


def is_server_error(status: Status) -> bool:
    return _is_http(status) and 500 <= status < 600


# ---------------------------------------------------------------------------
# Fallback taxonomy
# ---------------------------------------------------------------------------

_SENTINEL_LABELS = {
    TIMEOUT: "Timeout Error",
    DNS_ERROR: "DNS Error",
    CONNECTION_REFUSED: "Connection Refused",
    ERROR: "Connection Error",
    INVALID: "Invalid Email",
}


def issue_type_from_status(status: Status) -> str:
    if status == 404:
        return "Broken Link (404)"
    if status == 403:
        return "Access Forbidden (403)"
    if status == 401:
        return "Unauthorized (401)"
    if is_server_error(status):
        return "Server Error (500+)"
    if status == 304:
        return "Not Modified (Cached)"
    if is_redirect_status(status):
        return "Redirect"
    if isinstance(status, str) and status in _SENTINEL_LABELS:
        return _SENTINEL_LABELS[status]
    return "Unknown Issue"


def priority_from_status(status: Status) -> Priority:
    if status == 404 or is_server_error(status):
        return "Critical"
    if status in (403, 401) or status == TIMEOUT:
        return "High"
    if is_redirect_status(status):
        return "Medium"
    return "Low"
