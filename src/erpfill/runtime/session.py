"""Browser session: one Playwright browser/context/page per run, screenshots, storage state."""

import logging
import re
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from playwright.sync_api import BrowserContext, Page, sync_playwright

from erpfill.config import Settings

logger = logging.getLogger(__name__)

VIEWPORT = {"width": 1280, "height": 800}


@contextmanager
def open_browser(settings: Settings, storage_state: Optional[Path] = None) -> Iterator[tuple[BrowserContext, Page]]:
    """Launch chromium, yield (context, page), always close the browser."""
    with sync_playwright() as p:
        browser = p.chromium.launch(headless=settings.headless)
        try:
            kwargs = {"viewport": VIEWPORT}
            if storage_state is not None:
                kwargs["storage_state"] = str(storage_state)
            context = browser.new_context(**kwargs)
            page = context.new_page()
            yield context, page
        finally:
            browser.close()


def artifact_path(logs_dir: Path, username: str, kind: str, suffix: str) -> Path:
    """logs_dir/<user>_<kind>_<epoch ms><suffix>, with the username made filesystem-safe."""
    stem = re.sub(r"[^\w\-.]", "_", username) or "user"
    return Path(logs_dir) / f"{stem}_{kind}_{int(time.time() * 1000)}{suffix}"


def save_screenshot(page: Page, logs_dir: Path, username: str, kind: str) -> str:
    """Full-page PNG; returns its path, or '' if the capture failed."""
    path = artifact_path(logs_dir, username, kind, ".png")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        page.screenshot(path=str(path), full_page=True)
    except Exception as e:
        logger.warning("Screenshot %s failed: %s", path.name, e)
        return ""
    return str(path)


def save_state(context: BrowserContext, logs_dir: Path, username: str) -> str:
    """Persist cookies/localStorage as JSON; returns its path, or '' on failure."""
    path = artifact_path(logs_dir, username, "state", ".json")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        context.storage_state(path=str(path))
    except Exception as e:
        logger.warning("Saving session state %s failed: %s", path.name, e)
        return ""
    return str(path)
