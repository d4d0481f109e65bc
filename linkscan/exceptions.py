"""Scan-level failures surfaced to the caller.

Per-reference, per-page and evidence failures are absorbed inside the
pipeline and never raise; only the two conditions below abort a scan.
"""

from __future__ import annotations


class LinkScanError(Exception):
    """Base class for errors that abort a whole scan."""


class InvalidRootUrlError(LinkScanError, ValueError):
    """The root URL is not an absolute http(s) URL.  Raised before any browser starts."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid root URL: {url!r}")
        self.url = url


class BrowserLaunchError(LinkScanError):
    """A browser process could not be started."""
