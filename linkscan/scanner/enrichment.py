"""Contract for the optional text-analysis collaborator, plus its result cache.

The scanner never depends on an analyzer being present.  A missing analyzer,
a ``None`` reply, or an analyzer that raises all mean "no enrichment", and the
deterministic taxonomy in :mod:`linkscan.scanner.classifier` is used instead.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple

from linkscan.config import settings
from linkscan.logger import get_logger
from linkscan.scanner.models import PRIORITY_ORDER, Status

logger = get_logger(__name__)

NO_ISSUE = "No Issue"


@dataclass(frozen=True)
class AnalysisRequest:
    label: str
    target_url: str
    context: str
    status: Status

    @property
    def key(self) -> Tuple[str, str, str, str]:
        return (self.label, self.target_url, self.context, str(self.status))


@dataclass(frozen=True)
class Analysis:
    explanation: str
    suggested_fix: Optional[str] = None
    issue_type: Optional[str] = None
    priority: Optional[str] = None

    @property
    def flags_issue(self) -> bool:
        return self.issue_type is not None and self.issue_type != NO_ISSUE

    @property
    def valid_priority(self) -> Optional[str]:
        """The collaborator's priority if it is one of the four levels, else ``None``."""
        return self.priority if self.priority in PRIORITY_ORDER else None


TextAnalyzer = Callable[[AnalysisRequest], Awaitable[Optional[Analysis]]]


class AnalysisCache:
    """Least-recently-used cache of analyzer replies, bounded to *max_entries*.

    ``None`` replies are not cached so a transiently unavailable analyzer is
    asked again for the next matching reference.
    """

    def __init__(self, max_entries: Optional[int] = None) -> None:
        self.max_entries = max_entries if max_entries is not None else settings.analysis_cache_size
        self._entries: "OrderedDict[Tuple[str, str, str, str], Analysis]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, request: AnalysisRequest) -> Optional[Analysis]:
        entry = self._entries.get(request.key)
        if entry is not None:
            self._entries.move_to_end(request.key)
        return entry

    def put(self, request: AnalysisRequest, analysis: Analysis) -> None:
        if self.max_entries <= 0:
            return
        self._entries[request.key] = analysis
        self._entries.move_to_end(request.key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)


async def enrich(
    analyzer: Optional[TextAnalyzer],
    cache: AnalysisCache,
    request: AnalysisRequest,
) -> Optional[Analysis]:
    """Ask *analyzer* about *request*, consulting *cache* first."""
    if analyzer is None:
        return None

    cached = cache.get(request)
    if cached is not None:
        return cached

    try:
        analysis = await analyzer(request)
    except Exception as exc:
        logger.warning(f"Text analysis unavailable for {request.target_url}: {exc}")
        return None

    if analysis is not None:
        cache.put(request, analysis)
    return analysis
