"""Login: fill credentials, pause for a manual captcha, submit, and decide whether it worked."""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from playwright.sync_api import Page

from erpfill.config import Settings
from erpfill.errors import LoginError
from erpfill.models import Record
from erpfill.runtime.tools.web import (
    click,
    click_and_wait,
    exists,
    is_visible,
    select_option,
    set_text,
    wait_until,
)
from erpfill.selectors import SelectorConfig

logger = logging.getLogger(__name__)

LOGIN_NAVIGATION_TIMEOUT_MS = 30_000

# Month-first before day-first, as browsers parse "05/03/2024".
_DATE_FORMATS = ("%Y-%m-%d", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%m-%d-%Y", "%d-%m-%Y", "%d-%b-%Y")

_JS_CAPTCHA_DONE = """(sel) => {
  const el = document.querySelector(sel);
  return !el || (el.value || '').trim().length > 0;
}"""


@dataclass(frozen=True)
class LoginOutcome:
    ok: bool
    attempts: int
    error: Optional[str] = None


def format_date_for_input(value: Any) -> str:
    """YYYY-MM-DD for a date input, or '' when value is not a recognizable date."""
    if not value:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip().replace("/", "-")
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    return ""


def wait_for_captcha(page: Page, selectors: SelectorConfig, settings: Settings) -> bool:
    """Block until someone types the captcha in the browser (or it disappears), up to captcha_wait_ms."""
    logger.info("Captcha present - waiting up to %d s for manual solve in the browser", settings.captcha_wait_ms // 1000)
    solved = wait_until(page, _JS_CAPTCHA_DONE, selectors.css("validateCaptcha"), timeout_ms=settings.captcha_wait_ms)
    if not solved:
        logger.warning("Captcha wait ended without input: %s", solved.reason)
    return bool(solved)


def attempt_login(page: Page, record: Record, selectors: SelectorConfig, settings: Settings) -> None:
    """One login attempt. Raises LoginError when credentials cannot be entered or submitted."""
    timeout = settings.action_timeout_ms
    for name, key in (("userName", "UserName"), ("password", "Password")):
        outcome = set_text(page, selectors.css(name), record[key], timeout_ms=timeout)
        if not outcome:
            raise LoginError(f"Could not fill {key}: {outcome.reason}", row=record.row)

    login_date = format_date_for_input(record["LoginDataTime"])
    if login_date and not set_text(page, selectors.css("loginDate"), login_date, timeout_ms=timeout):
        logger.debug("Login date field not set")
    if record["Language"] and not select_option(page, selectors.css("language"), record["Language"], timeout_ms=timeout):
        logger.debug("Language not selected")

    if record["ValidateCaptcha"]:
        set_text(page, selectors.css("validateCaptcha"), record["ValidateCaptcha"], timeout_ms=timeout)
    elif exists(page, selectors.css("captchaImage")):
        wait_for_captcha(page, selectors, settings)

    button = selectors.css("loginButton")
    submitted = click_and_wait(page, lambda: click(page, button, timeout_ms=timeout), LOGIN_NAVIGATION_TIMEOUT_MS)
    if not submitted:
        raise LoginError(f"Could not click login button: {submitted.reason}", row=record.row)


def is_logged_in(page: Page, selectors: SelectorConfig, login_url: str) -> bool:
    """True if any signal matches: visible logout/user menu, no username field, or URL left the login page."""
    for name in ("logout", "userMenu"):
        if is_visible(page, selectors.css(name)):
            return True
    if not exists(page, selectors.css("userName")):
        return True
    url = page.url or ""
    if url and url != login_url and not any(marker in url for marker in selectors.login_url_markers):
        return True
    return False


def login(page: Page, record: Record, selectors: SelectorConfig, settings: Settings) -> LoginOutcome:
    """Up to settings.login_attempts attempts; stops at the first that passes is_logged_in."""
    last_error: Optional[str] = None
    attempts = 0
    for attempt in range(1, settings.login_attempts + 1):
        attempts = attempt
        logger.info("Login attempt %d/%d for %s", attempt, settings.login_attempts, record.username)
        try:
            attempt_login(page, record, selectors, settings)
        except Exception as e:
            last_error = str(e)
            logger.warning("Login attempt %d error: %s", attempt, e)
            continue
        if is_logged_in(page, selectors, settings.login_url):
            return LoginOutcome(True, attempts)
        last_error = "still on login page"
    return LoginOutcome(False, attempts, last_error)
