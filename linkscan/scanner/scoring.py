"""Triage: turn verification outcomes into ranked, scored issues."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, List, Optional, Sequence

from linkscan.scanner.classifier import (
    is_redirect_status,
    is_server_error,
    is_success_status,
)
from linkscan.scanner.models import (
    CONNECTION_REFUSED,
    DNS_ERROR,
    ERROR,
    PRIORITY_ORDER,
    TIMEOUT,
    Issue,
    Reference,
    ScanStats,
    Status,
    VerificationOutcome,
)

AFFILIATE_NOTE = " [Affiliate link - only checked if it opens, destination not scanned]"
BROWSER_NOTE = " (Verified with browser)"

_EVIDENCE_SENTINELS = frozenset({ERROR, DNS_ERROR, TIMEOUT})


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

def is_dropped(outcome: VerificationOutcome) -> bool:
    """Outcomes that never appear in a report, whatever enrichment says."""
    if outcome.skip:
        return True
    if outcome.status == 403 and outcome.is_affiliate and outcome.treat_as_working:
        return True
    return outcome.status == 304


def is_actual_issue(outcome: VerificationOutcome) -> bool:
    return (
        not is_success_status(outcome.status)
        and not outcome.treat_as_working
        and not is_redirect_status(outcome.status)
    )


def needs_analysis(outcome: VerificationOutcome, context: str) -> bool:
    """Whether the text-analysis collaborator should be consulted."""
    lowered = context.lower()
    return (
        outcome.status != 200
        or outcome.redirect_count > 0
        or "cta" in lowered
        or "button" in lowered
    )


def should_capture(outcome: VerificationOutcome) -> bool:
    if outcome.treat_as_working:
        return False
    return (
        outcome.status == 404
        or is_server_error(outcome.status)
        or outcome.status in _EVIDENCE_SENTINELS
    )


# ---------------------------------------------------------------------------
# Explanation and impact
# ---------------------------------------------------------------------------

def explain(outcome: VerificationOutcome, fallback: Optional[str] = None) -> str:
    """Human-readable explanation for an issue, with affiliate/browser notes."""
    status = outcome.status
    if status == 404:
        message = "Page not found (404). This link is broken and leads nowhere."
    elif status == 403:
        message = "Access forbidden (403). The server is blocking access to this page."
    elif is_server_error(status):
        message = f"Server error ({status}). The destination server has internal problems."
    elif status == TIMEOUT:
        message = "Request timeout. The page took too long to respond."
    elif status == DNS_ERROR:
        message = "Domain not found. The website address doesn't exist."
    elif status == CONNECTION_REFUSED:
        message = "Connection refused. The server is not accepting connections."
    elif status == ERROR:
        message = f"Connection error: {outcome.status_text}"
    elif is_redirect_status(status) and outcome.redirect_count > 0:
        message = (
            f"Working but has {outcome.redirect_count} redirect(s) "
            "which may slow page load."
        )
    else:
        message = fallback or f"Link returned {status} status"

    if outcome.is_affiliate:
        message += AFFILIATE_NOTE
    elif outcome.checked_with_browser:
        message += BROWSER_NOTE
    return message


def impact_score(status: Status, context: str, appearance_count: int) -> int:
    """Deterministic 0-100 score from status severity, placement and reach."""
    score = 50
    if status == 404:
        score += 30
    elif is_server_error(status):
        score += 35
    elif status == 403:
        score += 20
    elif is_redirect_status(status):
        score += 10

    lowered = context.lower()
    if "cta" in lowered or "button" in lowered:
        score += 20
    if "hero" in lowered or "header" in lowered:
        score += 15
    if "navigation" in lowered:
        score += 10

    score += min(appearance_count * 5, 20)
    return min(max(score, 0), 100)


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------

def health_score(total_links: int, issue_count: int) -> Optional[int]:
    """Percentage of references without a reported issue; ``None`` with no references."""
    if total_links <= 0:
        return None
    return round(100 * (total_links - issue_count) / total_links)


def rank_issues(issues: Iterable[Issue]) -> List[Issue]:
    """Critical first, then High, Medium, Low; discovery order within a level."""
    return sorted(issues, key=lambda issue: PRIORITY_ORDER[issue.priority])


def build_stats(
    pages: Sequence[str], references: Sequence[Reference], issues: Sequence[Issue]
) -> ScanStats:
    counts = Counter(issue.priority for issue in issues)
    avg = round(sum(i.impact_score for i in issues) / len(issues)) if issues else 0
    return ScanStats(
        total_pages=len(pages),
        total_links=len(references),
        issues=len(issues),
        critical_issues=counts["Critical"],
        high_issues=counts["High"],
        medium_issues=counts["Medium"],
        low_issues=counts["Low"],
        avg_impact_score=avg,
    )
