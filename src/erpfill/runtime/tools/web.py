"""Safe DOM actions over a Playwright page. Never raise: every action returns an ActionResult."""

import functools
import logging
from typing import Any, Callable, Iterable, Optional

from playwright.sync_api import Page

from erpfill.models import ActionResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 4000

TRUTHY = {"1", "true", "yes", "y", "on", "t"}

_JS_SET_VALUE = """([sel, val, events]) => {
  const el = document.querySelector(sel);
  if (!el) return false;
  if (el.readOnly) el.removeAttribute('readonly');
  el.focus();
  el.value = val;
  for (const name of events) {
    const ev = name === 'keyup'
      ? new KeyboardEvent('keyup', {bubbles: true, key: '0'})
      : new Event(name, {bubbles: true});
    el.dispatchEvent(ev);
  }
  return true;
}"""

_JS_SELECT_BY_TEXT = """([sel, text]) => {
  const el = document.querySelector(sel);
  if (!el) return false;
  const wanted = (text || '').trim().toLowerCase();
  const options = Array.from(el.options || []);
  const opt = options.find(o => (o.text || '').trim().toLowerCase() === wanted)
    || options.find(o => (o.text || '').toLowerCase().includes(wanted));
  if (!opt) return false;
  el.value = opt.value;
  el.dispatchEvent(new Event('change', {bubbles: true}));
  return true;
}"""

_JS_OPTION_AT = """([sel, index]) => {
  const el = document.querySelector(sel);
  if (!el) return null;
  const opts = el.querySelectorAll('option');
  if (opts.length <= index) return null;
  return opts[index].value || opts[index].textContent.trim();
}"""

_JS_SET_CHECKED = """([sel, should]) => {
  const el = document.querySelector(sel);
  if (!el) return null;
  if (el.checked === should) return false;
  el.checked = should;
  el.dispatchEvent(new Event('change', {bubbles: true}));
  return true;
}"""

_JS_ELEMENT_KIND = """(sel) => {
  const el = document.querySelector(sel);
  if (!el) return null;
  const tag = el.tagName.toLowerCase();
  if (tag === 'input' && (el.type === 'checkbox' || el.type === 'radio')) return 'checkbox';
  return tag;
}"""

_JS_SCRIPT_CLICK = """(sel) => {
  const el = document.querySelector(sel);
  if (!el) return false;
  el.click();
  return true;
}"""

_JS_IS_DISABLED = """(sel) => {
  const el = document.querySelector(sel);
  return !!(el && (el.disabled || el.hasAttribute('disabled')));
}"""


def _safe(fn: Callable[..., ActionResult]) -> Callable[..., ActionResult]:
    """Turn any exception raised by a DOM action into a failed ActionResult."""
    @functools.wraps(fn)
    def wrapper(page: Page, selector: str, *args: Any, **kwargs: Any) -> ActionResult:
        if not selector:
            return ActionResult.failure("no selector")
        try:
            return fn(page, selector, *args, **kwargs)
        except Exception as e:
            logger.debug("%s(%s) failed: %s", fn.__name__, selector, e)
            return ActionResult.failure(f"{type(e).__name__}: {e}")
    return wrapper


def is_truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return str(value).strip().lower() in TRUTHY


@_safe
def wait_for(page: Page, selector: str, timeout_ms: int = DEFAULT_TIMEOUT_MS, state: str = "attached") -> ActionResult:
    page.wait_for_selector(selector, state=state, timeout=timeout_ms)
    return ActionResult.success()


@_safe
def click(page: Page, selector: str, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> ActionResult:
    page.wait_for_selector(selector, state="visible", timeout=timeout_ms)
    page.click(selector, timeout=timeout_ms)
    return ActionResult.success()


@_safe
def script_click(page: Page, selector: str, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> ActionResult:
    """Click through element.click(); works on hidden controls that page.click refuses."""
    page.wait_for_selector(selector, state="attached", timeout=timeout_ms)
    if not page.evaluate(_JS_SCRIPT_CLICK, selector):
        return ActionResult.failure("element not found")
    return ActionResult.success()


@_safe
def set_text(
    page: Page,
    selector: str,
    value: Any,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    events: Iterable[str] = ("input", "change"),
) -> ActionResult:
    """Set an input/textarea value (clearing readonly) and fire events so page scripts run."""
    if value is None:
        return ActionResult.failure("no value")
    page.wait_for_selector(selector, state="attached", timeout=timeout_ms)
    if not page.evaluate(_JS_SET_VALUE, [selector, str(value), list(events)]):
        return ActionResult.failure("element not found")
    return ActionResult.success()


@_safe
def select_option(page: Page, selector: str, value: Any, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> ActionResult:
    """Select by option value; else by visible text (exact, then substring)."""
    if value is None:
        return ActionResult.failure("no value")
    text = str(value)
    page.wait_for_selector(selector, state="attached", timeout=timeout_ms)
    try:
        if page.select_option(selector, value=text, timeout=min(timeout_ms, 1000)):
            return ActionResult.success()
    except Exception as e:
        logger.debug("select %s by value %r failed (%s); trying text", selector, text, e)
    if page.evaluate(_JS_SELECT_BY_TEXT, [selector, text]):
        return ActionResult.success()
    return ActionResult.failure(f"no option matching {text!r}")


@_safe
def select_second_option(page: Page, selector: str, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> ActionResult:
    """Pick the first real option after the placeholder."""
    page.wait_for_selector(selector, state="attached", timeout=timeout_ms)
    value = page.evaluate(_JS_OPTION_AT, [selector, 1])
    if not value:
        return ActionResult.failure("fewer than two options")
    return select_option(page, selector, value, timeout_ms=timeout_ms)


@_safe
def set_checkbox(page: Page, selector: str, value: Any, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> ActionResult:
    page.wait_for_selector(selector, state="attached", timeout=timeout_ms)
    if page.evaluate(_JS_SET_CHECKED, [selector, is_truthy(value)]) is None:
        return ActionResult.failure("element not found")
    return ActionResult.success()


@_safe
def goto(page: Page, url: str, timeout_ms: int = 30_000) -> ActionResult:
    page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
    return ActionResult.success()


def wait_for_settle(page: Page, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> ActionResult:
    """Wait for network idle, bounded by timeout_ms."""
    try:
        page.wait_for_load_state("networkidle", timeout=timeout_ms)
        return ActionResult.success()
    except Exception as e:
        return ActionResult.failure(f"{type(e).__name__}: {e}")


def wait_until(page: Page, expression: str, arg: Any = None, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> ActionResult:
    """Poll a JS predicate until truthy, bounded by timeout_ms."""
    try:
        page.wait_for_function(expression, arg=arg, timeout=timeout_ms)
        return ActionResult.success()
    except Exception as e:
        return ActionResult.failure(f"{type(e).__name__}: {e}")


def click_and_wait(page: Page, do_click: Callable[[], ActionResult], timeout_ms: int) -> ActionResult:
    """Run do_click expecting a navigation; if none comes, wait for network idle instead."""
    outcome = ActionResult.failure("not attempted")
    try:
        with page.expect_navigation(wait_until="domcontentloaded", timeout=timeout_ms):
            outcome = do_click()
    except Exception as e:
        logger.debug("no navigation after click (%s); waiting for idle", e)
        wait_for_settle(page, timeout_ms)
    return outcome


def element_kind(page: Page, selector: str) -> Optional[str]:
    """'select', 'input', 'textarea', 'checkbox', another tag name, or None if absent."""
    try:
        return page.evaluate(_JS_ELEMENT_KIND, selector)
    except Exception:
        return None


def exists(page: Page, selector: str) -> bool:
    if not selector:
        return False
    try:
        return page.query_selector(selector) is not None
    except Exception:
        return False


def is_visible(page: Page, selector: str) -> bool:
    if not selector:
        return False
    try:
        return page.is_visible(selector)
    except Exception:
        return False


def is_disabled(page: Page, selector: str) -> bool:
    try:
        return bool(page.evaluate(_JS_IS_DISABLED, selector))
    except Exception:
        return False


def resolve(page: Page, candidates: Iterable[str]) -> Optional[str]:
    """First candidate selector present on the page."""
    for selector in candidates:
        if exists(page, selector):
            return selector
    return None
