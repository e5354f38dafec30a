"""
Diagnostic snapshots of a failed purchase page
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiagnosticPaths:
    screenshot: Path
    html: Path


def diagnostic_prefix(now: Optional[datetime] = None) -> str:
    """Sortable, filesystem-safe prefix such as error-2026-10-17T08-15-30.123456+00-00"""
    now = now or datetime.now(timezone.utc)
    return f"error-{now.isoformat()}".replace(":", "-")


def allocate_paths(directory: Path, now: Optional[datetime] = None) -> DiagnosticPaths:
    """Derive snapshot paths from the current time, suffixing on collision"""
    prefix = diagnostic_prefix(now)
    for attempt in range(100):
        name = f"{prefix}-{attempt:02d}" if attempt else prefix
        paths = DiagnosticPaths(directory / f"{name}.png", directory / f"{name}.html")
        if not paths.screenshot.exists() and not paths.html.exists():
            return paths
    raise RuntimeError(f"Could not allocate a unique diagnostic name for {prefix}")


class DiagnosticsSink:
    """Writes the screenshot and markup of the current page to durable storage"""

    async def write_screenshot(self, session, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        await session.screenshot(path)

    def write_html(self, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    async def capture(self, session, directory: Path) -> DiagnosticPaths:
        paths = allocate_paths(directory)
        await self.write_screenshot(session, paths.screenshot)
        self.write_html(paths.html, await session.content())
        return paths
