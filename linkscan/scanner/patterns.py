"""Pattern table driving link classification.

Every substring and regular expression the classifier, crawler and scorer
match against lives here so the rules can be reviewed and tested in one place.
Substring patterns are matched case-insensitively against the whole URL.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class PatternTable:
    tracking: Tuple[str, ...]
    affiliate: Tuple[str, ...]
    inline_schemes: Tuple[str, ...]
    internal_prefixes: Tuple[str, ...]
    cta_classes: Tuple[str, ...]
    email: re.Pattern


DEFAULT_PATTERNS = PatternTable(
    tracking=(
        "bat.bing.com",
        "google-analytics.com",
        "googletagmanager.com",
        "facebook.com/tr",
        "doubleclick.net",
        "analytics.",
        "/pixel",
        "/beacon",
        "track.php",
        "collect?",
    ),
    affiliate=(
        "/api/click",
        "/track",
        "/aff",
        "/redirect",
        "/redir",
        "/goto",
        "/out",
        "clickid",
        "affid",
        "tid=",
    ),
    inline_schemes=("data:", "blob:"),
    internal_prefixes=("javascript:", "#"),
    cta_classes=("btn", "button", "cta"),
    email=re.compile(r"^mailto:[a-zA-Z0-9._-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"),
)


def matches_any(url: str, patterns: Tuple[str, ...]) -> bool:
    lowered = url.lower()
    return any(p in lowered for p in patterns)
