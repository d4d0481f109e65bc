"""Data models for the scan pipeline."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

# ---------------------------------------------------------------------------
# Status values
# ---------------------------------------------------------------------------

DNS_ERROR = "DNS_ERROR"
TIMEOUT = "TIMEOUT"
CONNECTION_REFUSED = "CONNECTION_REFUSED"
ERROR = "ERROR"
INVALID = "INVALID"

SENTINELS = frozenset({DNS_ERROR, TIMEOUT, CONNECTION_REFUSED, ERROR, INVALID})

Status = Union[int, str]


def is_http_status(status: Any) -> bool:
    """Any three-digit code, including non-standard ones such as LinkedIn's 999."""
    return isinstance(status, int) and not isinstance(status, bool) and 100 <= status <= 999

# ---------------------------------------------------------------------------
# Priorities
# ---------------------------------------------------------------------------

Priority = Literal["Critical", "High", "Medium", "Low"]

PRIORITY_ORDER: Dict[str, int] = {"Critical": 0, "High": 1, "Medium": 2, "Low": 3}

ReferenceKind = Literal["link", "image", "css", "script"]


@dataclass(frozen=True)
class Reference:
    """One DOM element on *page_url* pointing at *url*."""

    page_url: str
    url: str
    text: str
    kind: ReferenceKind
    context: str = "Unknown"

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("Reference target URL must not be empty")


@dataclass
class VerificationOutcome:
    """The result of checking one target URL."""

    status: Status
    status_text: str
    response_time: int = 0
    redirect_count: int = 0
    final_url: Optional[str] = None
    checked_with_browser: bool = False
    is_affiliate: bool = False
    treat_as_working: bool = False
    skip: bool = False

    def __post_init__(self) -> None:
        if not (is_http_status(self.status) or self.status in SENTINELS):
            raise ValueError(f"Invalid verification status: {self.status!r}")


@dataclass
class Issue:
    """A reference whose outcome qualifies as a reportable defect."""

    reference: Reference
    outcome: VerificationOutcome
    priority: Priority
    issue_type: str
    explanation: str
    impact_score: int
    appearance_count: int
    suggested_fix: Optional[str] = None
    screenshot: Optional[bytes] = None

    def to_dict(self) -> Dict[str, Any]:
        ref, out = self.reference, self.outcome
        return {
            "pageUrl": ref.page_url,
            "linkText": ref.text,
            "linkUrl": ref.url,
            "linkType": ref.kind,
            "context": ref.context,
            "status": out.status,
            "statusText": out.status_text,
            "responseTime": out.response_time,
            "redirectCount": out.redirect_count,
            "finalUrl": out.final_url or ref.url,
            "priority": self.priority,
            "type": self.issue_type,
            "explanation": self.explanation,
            "suggestedFix": self.suggested_fix,
            "impactScore": self.impact_score,
            "appearancesCount": self.appearance_count,
            "screenshot": (
                base64.b64encode(self.screenshot).decode("ascii") if self.screenshot else None
            ),
        }


@dataclass
class ScanStats:
    total_pages: int
    total_links: int
    issues: int
    critical_issues: int
    high_issues: int
    medium_issues: int
    low_issues: int
    avg_impact_score: int


@dataclass
class ScanReport:
    """Terminal artifact of one scan."""

    root_url: str
    health_score: Optional[int]
    stats: ScanStats
    issues: List[Issue] = field(default_factory=list)
    pages: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready rendering; screenshots become base64 PNG strings."""
        stats = self.stats
        return {
            "rootUrl": self.root_url,
            "healthScore": self.health_score,
            "stats": {
                "totalPages": stats.total_pages,
                "totalLinks": stats.total_links,
                "brokenLinks": stats.issues,
                "criticalIssues": stats.critical_issues,
                "highIssues": stats.high_issues,
                "mediumIssues": stats.medium_issues,
                "lowIssues": stats.low_issues,
                "avgImpactScore": stats.avg_impact_score,
            },
            "results": [
                {"id": idx, **issue.to_dict()} for idx, issue in enumerate(self.issues, start=1)
            ],
            "pages": list(self.pages),
        }
