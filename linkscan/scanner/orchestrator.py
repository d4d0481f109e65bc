"""End-to-end scan: crawl → verify → capture evidence → score → report.

``run_scan`` is the single public entry point.  It owns every browser it
uses: the crawler launches and closes its own, and the verification and
screenshot browsers live in one ``AsyncExitStack`` so a failure anywhere,
including a failed launch of the second browser, closes whatever was already
started.
"""

from __future__ import annotations

from collections import Counter
from contextlib import AsyncExitStack
from typing import Any, AsyncContextManager, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlparse

import httpx

from linkscan.exceptions import InvalidRootUrlError
from linkscan.logger import get_logger
from linkscan.scanner.browser import launch_browser
from linkscan.scanner.classifier import issue_type_from_status, priority_from_status
from linkscan.scanner.crawler import CrawlResult, crawl
from linkscan.scanner.enrichment import AnalysisCache, AnalysisRequest, TextAnalyzer, enrich
from linkscan.scanner.evidence import capture
from linkscan.scanner.models import Issue, Reference, ScanReport, VerificationOutcome
from linkscan.scanner.scoring import (
    build_stats,
    explain,
    health_score,
    impact_score,
    is_actual_issue,
    is_dropped,
    needs_analysis,
    rank_issues,
    should_capture,
)
from linkscan.scanner.verifier import build_client, verify

logger = get_logger(__name__)

CrawlFn = Callable[[str, Optional[int]], Awaitable[CrawlResult]]
VerifyFn = Callable[[str, Any, Optional[httpx.AsyncClient]], Awaitable[VerificationOutcome]]
CaptureFn = Callable[[str, str, str, Any], Awaitable[Optional[bytes]]]
BrowserFactory = Callable[[], AsyncContextManager[Any]]


def validate_root_url(url: str) -> str:
    """Return *url* stripped if it is an absolute http(s) URL with a host.

    Raises:
        InvalidRootUrlError: Otherwise.
    """
    candidate = (url or "").strip()
    try:
        parsed = urlparse(candidate)
    except ValueError as exc:
        raise InvalidRootUrlError(url) from exc
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InvalidRootUrlError(url)
    return candidate


def unique_references(references: List[Reference]) -> List[Reference]:
    """First occurrence of each target URL, in discovery order."""
    first: Dict[str, Reference] = {}
    for ref in references:
        first.setdefault(ref.url, ref)
    return list(first.values())


async def run_scan(
    root_url: str,
    max_pages: Optional[int] = None,
    analyzer: Optional[TextAnalyzer] = None,
    cache: Optional[AnalysisCache] = None,
    *,
    crawl_fn: CrawlFn = crawl,
    verify_fn: VerifyFn = verify,
    capture_fn: CaptureFn = capture,
    browser_factory: BrowserFactory = launch_browser,
    client_factory: Callable[[], httpx.AsyncClient] = build_client,
) -> ScanReport:
    """Scan *root_url* and return a ranked :class:`ScanReport`.

    Args:
        root_url: Absolute http(s) URL the crawl starts from.
        max_pages: Page limit; ``settings.max_pages`` when ``None``.
        analyzer: Optional text-analysis collaborator.
        cache: Cache for analyzer replies; a fresh bounded one when ``None``.

    The keyword-only arguments replace the pipeline stages and exist for
    integration and testing.

    Raises:
        InvalidRootUrlError: Before any browser is started.
        BrowserLaunchError: If a browser cannot be started.
    """
    root_url = validate_root_url(root_url)
    cache = cache if cache is not None else AnalysisCache()

    logger.info(f"Starting scan for: {root_url}")
    crawled = await crawl_fn(root_url, max_pages)

    appearances = Counter(ref.url for ref in crawled.references)
    targets = unique_references(crawled.references)
    logger.info(f"Checking {len(targets)} unique references")

    issues: List[Issue] = []
    if targets:
        async with AsyncExitStack() as stack:
            verify_browser = await stack.enter_async_context(browser_factory())
            screenshot_browser = await stack.enter_async_context(browser_factory())
            client = await stack.enter_async_context(client_factory())

            for idx, ref in enumerate(targets, start=1):
                logger.info(f"[{idx}/{len(targets)}] {ref.url[:80]}")
                outcome = await verify_fn(ref.url, verify_browser, client)
                if is_dropped(outcome):
                    continue

                issue = await _triage(
                    ref,
                    outcome,
                    appearances[ref.url],
                    analyzer,
                    cache,
                    capture_fn,
                    screenshot_browser,
                )
                if issue is not None:
                    logger.info(f"Issue found: {outcome.status} - {issue.explanation[:80]}")
                    issues.append(issue)

    ranked = rank_issues(issues)
    stats = build_stats(crawled.pages, crawled.references, ranked)
    report = ScanReport(
        root_url=root_url,
        health_score=health_score(stats.total_links, stats.issues),
        stats=stats,
        issues=ranked,
        pages=list(crawled.pages),
    )
    logger.info(
        f"Scan complete: health={report.health_score} links={stats.total_links} "
        f"issues={stats.issues} critical={stats.critical_issues} high={stats.high_issues}"
    )
    return report


async def _triage(
    ref: Reference,
    outcome: VerificationOutcome,
    appearance_count: int,
    analyzer: Optional[TextAnalyzer],
    cache: AnalysisCache,
    capture_fn: CaptureFn,
    screenshot_browser: Any,
) -> Optional[Issue]:
    """Build an :class:`Issue` for *ref*, or ``None`` if it is not a problem."""
    analysis = None
    if needs_analysis(outcome, ref.context):
        analysis = await enrich(
            analyzer,
            cache,
            AnalysisRequest(
                label=ref.text,
                target_url=ref.url,
                context=ref.context,
                status=outcome.status,
            ),
        )

    flagged = analysis is not None and analysis.flags_issue
    if not (is_actual_issue(outcome) or flagged):
        return None

    screenshot = None
    if should_capture(outcome):
        screenshot = await capture_fn(ref.page_url, ref.text, ref.url, screenshot_browser)

    return Issue(
        reference=ref,
        outcome=outcome,
        priority=(analysis.valid_priority if analysis else None)
        or priority_from_status(outcome.status),
        issue_type=(analysis.issue_type if flagged else None)
        or issue_type_from_status(outcome.status),
        explanation=explain(outcome, analysis.explanation if analysis else None),
        suggested_fix=analysis.suggested_fix if analysis else None,
        impact_score=impact_score(outcome.status, ref.context, appearance_count),
        appearance_count=appearance_count,
        screenshot=screenshot,
    )
