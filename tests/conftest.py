"""Shared pytest fixtures: an in-memory stand-in for a Playwright page, settings, spreadsheets."""

from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

import openpyxl
import pytest
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from erpfill.config import Settings
from erpfill.runtime import form_fill, login, payment
from erpfill.runtime.tools import web
from erpfill.selectors import default_selectors

LOGIN_URL = "https://erp.test/Home"
FORM_URL = "https://erp.test/FAS/TransactionPayment"


@dataclass
class FakeElement:
    tag: str = "input"
    type: str = "text"
    value: str = ""
    options: list[tuple[str, str]] = field(default_factory=list)  # (value, text)
    checked: bool = False
    readonly: bool = False
    visible: bool = True
    disabled: bool = False
    events: list[str] = field(default_factory=list)
    clicks: int = 0
    on_click: Optional[Callable[["FakePage"], None]] = None


def select(*options: tuple[str, str], value: str = "") -> FakeElement:
    return FakeElement(tag="select", options=list(options), value=value)


def button(on_click: Optional[Callable[["FakePage"], None]] = None, **kwargs: Any) -> FakeElement:
    return FakeElement(tag="button", type="submit", on_click=on_click, **kwargs)


class FakePage:
    """Implements the subset of playwright.sync_api.Page that erpfill calls.

    Elements are keyed by a single CSS selector; a comma-separated selector list
    matches the first registered element named in it (insertion order stands in
    for document order).
    """

    def __init__(self, elements: Optional[dict[str, FakeElement]] = None, url: str = LOGIN_URL):
        self.elements: dict[str, FakeElement] = dict(elements or {})
        self.url = url
        self.clicked: list[str] = []
        self.visited: list[str] = []
        self.submitted_forms: list[str] = []
        self.screenshots: list[str] = []
        self.batch_rows: list[str] = []
        self.load_waits = 0
        self.on_goto: Optional[Callable[["FakePage", str], None]] = None

    def _find(self, selector: str) -> Optional[FakeElement]:
        parts = {p.strip() for p in selector.split(",")}
        for key, el in self.elements.items():
            if key in parts:
                return el
        return None

    def _timeout(self, selector: str, timeout: Any) -> PlaywrightTimeoutError:
        return PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

    def _click(self, selector: str, el: FakeElement) -> None:
        el.clicks += 1
        self.clicked.append(selector)
        if el.on_click:
            el.on_click(self)

    # Page API

    def wait_for_selector(self, selector: str, state: str = "visible", timeout: Any = None) -> FakeElement:
        el = self._find(selector)
        if el is None or (state == "visible" and not el.visible):
            raise self._timeout(selector, timeout)
        return el

    def query_selector(self, selector: str) -> Optional[FakeElement]:
        return self._find(selector)

    def is_visible(self, selector: str) -> bool:
        el = self._find(selector)
        return el is not None and el.visible

    def click(self, selector: str, timeout: Any = None) -> None:
        el = self.wait_for_selector(selector, timeout=timeout)
        if el.disabled:
            raise self._timeout(selector, timeout)
        self._click(selector, el)

    def select_option(self, selector: str, value: Optional[str] = None, timeout: Any = None) -> list[str]:
        el = self.wait_for_selector(selector, state="attached", timeout=timeout)
        if not any(v == value for v, _ in el.options):
            raise self._timeout(selector, timeout)
        el.value = value
        el.events.append("change")
        return [value]

    def goto(self, url: str, wait_until: str = "load", timeout: Any = None) -> None:
        self.visited.append(url)
        self.url = url
        if self.on_goto:
            self.on_goto(self, url)

    def wait_for_load_state(self, state: str = "load", timeout: Any = None) -> None:
        self.load_waits += 1

    def wait_for_function(self, expression: str, arg: Any = None, timeout: Any = None) -> None:
        if expression == login._JS_CAPTCHA_DONE:
            el = self._find(arg)
            if el is None or el.value.strip():
                return
            raise self._timeout(arg, timeout)
        if expression == payment._JS_HAS_OPTIONS:
            el = self._find(arg)
            if el is not None and len(el.options) > 1:
                return
            raise self._timeout(arg, timeout)

    @contextmanager
    def expect_navigation(self, wait_until: str = "load", timeout: Any = None):
        yield

    def screenshot(self, path: str, full_page: bool = False) -> None:
        Path(path).write_bytes(b"\x89PNG")
        self.screenshots.append(path)

    def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == web._JS_SET_VALUE:
            sel, val, events = arg
            el = self._find(sel)
            if el is None:
                return False
            el.readonly = False
            el.value = val
            el.events.extend(events)
            return True
        if script == web._JS_SELECT_BY_TEXT:
            sel, text = arg
            el = self._find(sel)
            if el is None:
                return False
            wanted = text.strip().lower()
            match = next((v for v, t in el.options if t.strip().lower() == wanted), None)
            if match is None:
                match = next((v for v, t in el.options if wanted in t.lower()), None)
            if match is None:
                return False
            el.value = match
            el.events.append("change")
            return True
        if script == web._JS_OPTION_AT:
            sel, index = arg
            el = self._find(sel)
            if el is None or len(el.options) <= index:
                return None
            value, text = el.options[index]
            return value or text
        if script == web._JS_SET_CHECKED:
            sel, should = arg
            el = self._find(sel)
            if el is None:
                return None
            if el.checked == should:
                return False
            el.checked = should
            el.events.append("change")
            return True
        if script == web._JS_ELEMENT_KIND:
            el = self._find(arg)
            if el is None:
                return None
            if el.tag == "input" and el.type in ("checkbox", "radio"):
                return "checkbox"
            return el.tag
        if script == web._JS_SCRIPT_CLICK:
            el = self._find(arg)
            if el is None:
                return False
            self._click(arg, el)
            return True
        if script == web._JS_IS_DISABLED:
            el = self._find(arg)
            return bool(el and el.disabled)
        if script == form_fill._JS_SUBMIT_FORM:
            if self._find(arg) is None:
                return False
            self.submitted_forms.append(arg)
            return True
        if script == payment._JS_CLICK_BATCH_ROW:
            return bool(self.batch_rows) and (arg in self.batch_rows or "onRowClick" in self.batch_rows)
        raise NotImplementedError(f"FakePage cannot evaluate: {script[:40]!r}")


class FakeContext:
    def __init__(self):
        self.saved: list[str] = []

    def storage_state(self, path: str) -> None:
        Path(path).write_text('{"cookies": [], "origins": []}', encoding="utf-8")
        self.saved.append(path)


def login_page(succeeds: bool = True, captcha: bool = False) -> dict[str, FakeElement]:
    """Login form whose submit button removes the username field when the login succeeds."""
    def submit(page: FakePage) -> None:
        if succeeds:
            page.elements.pop("#UserName", None)
            page.url = "https://erp.test/Dashboard"

    elements = {
        "#UserName": FakeElement(),
        "#Password": FakeElement(type="password"),
        "#LoginDataTime": FakeElement(type="date"),
        "#ValidateCaptcha": FakeElement(),
        "button[type='submit']": button(on_click=submit),
    }
    if captcha:
        elements["#imgcapt"] = FakeElement(tag="img")
    return elements


@pytest.fixture
def page():
    return FakePage()


@pytest.fixture
def context():
    return FakeContext()


@pytest.fixture
def selectors():
    return default_selectors()


@pytest.fixture
def settings(tmp_path):
    """Settings with tiny timeouts and logs under tmp_path."""
    return Settings(
        login_url=LOGIN_URL,
        form_url=FORM_URL,
        logs_dir=tmp_path / "logs",
        captcha_wait_ms=10,
        action_timeout_ms=10,
        wait_after_save_ms=10,
    )


@pytest.fixture
def make_xlsx(tmp_path):
    """Factory: write headers + rows to an .xlsx under tmp_path and return its path."""
    def _make(headers: list[str], rows: list[list[Any]], name: str = "input.xlsx") -> Path:
        path = tmp_path / name
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(headers)
        for row in rows:
            ws.append(row)
        wb.save(path)
        return path
    return _make
