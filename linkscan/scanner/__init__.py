"""Scanner package: crawling, verification, evidence capture and ranking."""

from linkscan.scanner.crawler import CrawlResult, crawl
from linkscan.scanner.evidence import capture
from linkscan.scanner.models import Issue, Reference, ScanReport, VerificationOutcome
from linkscan.scanner.orchestrator import run_scan, validate_root_url
from linkscan.scanner.verifier import verify

__all__ = [
    "run_scan",
    "validate_root_url",
    "crawl",
    "verify",
    "capture",
    "CrawlResult",
    "Reference",
    "VerificationOutcome",
    "Issue",
    "ScanReport",
]
