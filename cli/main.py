"""linkscan CLI: run a link scan from the terminal.

Usage:
    python cli/main.py --help
    python cli/main.py scan https://example.com --max-pages 20 --output report.json
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from linkscan.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import asyncio
import json
from typing import Optional

import typer

from linkscan.config import settings
from linkscan.exceptions import BrowserLaunchError, InvalidRootUrlError
from linkscan.scanner.models import ScanReport
from linkscan.scanner.orchestrator import run_scan, validate_root_url

app = typer.Typer(
    name="linkscan",
    help="Crawl a website and report broken links, images, stylesheets and scripts.",
    no_args_is_help=True,
)


@app.callback()
def main() -> None:
    """linkscan command group."""


def _print_report(report: ScanReport) -> None:
    stats = report.stats
    health = "n/a" if report.health_score is None else f"{report.health_score}/100"
    typer.echo("=" * 72)
    typer.echo(f"[scan] Health score : {health}")
    typer.echo(f"[scan] Pages        : {stats.total_pages}")
    typer.echo(f"[scan] References   : {stats.total_links}")
    typer.echo(
        f"[scan] Issues       : {stats.issues}  "
        f"(critical={stats.critical_issues} high={stats.high_issues} "
        f"medium={stats.medium_issues} low={stats.low_issues})"
    )
    typer.echo("=" * 72)
    for issue in report.issues:
        shot = "  [screenshot]" if issue.screenshot else ""
        typer.echo(
            f"  [{issue.priority}] {issue.outcome.status}  {issue.reference.url}  "
            f"(on {issue.reference.page_url}, impact={issue.impact_score}){shot}"
        )
        typer.echo(f"      {issue.explanation}")


@app.command("scan")
def scan(
    url: str = typer.Argument(..., help="Root URL to crawl (absolute http/https)."),
    max_pages: int = typer.Option(
        settings.max_pages, "--max-pages", min=1, help="Maximum pages to crawl."
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the full report as JSON to this file."
    ),
) -> None:
    """Crawl URL, verify every reference, and print the ranked issue list."""
    try:
        root = validate_root_url(url)
    except InvalidRootUrlError as exc:
        typer.echo(f"[scan] {exc}", err=True)
        raise typer.Exit(2)

    typer.echo(f"[scan] Scanning {root!r} (max {max_pages} pages) …")
    try:
        report = asyncio.run(run_scan(root, max_pages=max_pages))
    except BrowserLaunchError as exc:
        typer.echo(f"[scan] {exc}", err=True)
        raise typer.Exit(1)

    _print_report(report)

    if output is not None:
        output.write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")
        typer.echo(f"[scan] Report written to {output}")


if __name__ == "__main__":
    app()
