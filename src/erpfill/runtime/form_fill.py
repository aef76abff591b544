"""Generic form fill: spreadsheet row -> element ids -> safe actions, with optional submit."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

from playwright.sync_api import Page

from erpfill.config import Settings
from erpfill.models import FillReport, RowResult
from erpfill.runtime.tools import TOOLS, element_kind, select_option, set_checkbox, set_text
from erpfill.runtime.tools.web import (
    DEFAULT_TIMEOUT_MS,
    click,
    click_and_wait,
    exists,
    goto,
    script_click,
    wait_for_settle,
)
from erpfill.selectors import SelectorConfig

logger = logging.getLogger(__name__)

DISBURSEMENT_AMOUNT = "MoreDisbursementDetaos_DisbursmentAmount"

_JS_SUBMIT_FORM = """(sel) => {
  const form = document.querySelector(sel);
  if (!form) return false;
  form.submit();
  return true;
}"""


@dataclass(frozen=True)
class FillOptions:
    submit: bool = False
    use_post_button: bool = False
    redirect_url: Optional[str] = None
    dry_run: bool = False
    wait_after_save_ms: int = 1000
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "FillOptions":
        return cls(
            dry_run=settings.dry_run,
            wait_after_save_ms=settings.wait_after_save_ms,
            timeout_ms=settings.action_timeout_ms,
            **kwargs,
        )


def _fill_field(page: Page, field_id: str, value: str, result: RowResult, timeout_ms: int) -> None:
    """Set one element by id (falling back to name); record filled or an error. Never raises."""
    by_id = f"#{field_id}"
    kind = element_kind(page, by_id)

    if kind == "select":
        result.record(field_id, select_option(page, by_id, value, timeout_ms=timeout_ms), f"Could not select {field_id} -> {value}")
        wait_for_settle(page, timeout_ms)
        return
    if kind == "checkbox":
        result.record(field_id, set_checkbox(page, by_id, value, timeout_ms=timeout_ms), f"Could not set checkbox {field_id}")
        return
    if kind not in (None, "input", "textarea"):
        result.record(field_id, set_text(page, by_id, value, timeout_ms=timeout_ms), f"Unknown element type {kind!r} for {field_id}")
        return

    if kind is not None and set_text(page, by_id, value, timeout_ms=timeout_ms):
        result.filled.append(field_id)
        return
    by_name = f'[name="{field_id}"]'
    action = TOOLS.get(element_kind(page, by_name) or "input", set_text)
    result.record(
        f"{field_id}(byName)",
        action(page, by_name, value, timeout_ms=timeout_ms),
        f"Could not set value for {field_id} (tried id & name)",
    )


def _has_sub_details(row: Mapping[str, Any], selectors: SelectorConfig) -> bool:
    """A sub-detail column in the sheet is enough, even if this row leaves it blank."""
    return any(str(header).startswith(prefix) for header in row for prefix in selectors.sub_detail_prefixes)


def _submit(page: Page, selectors: SelectorConfig, options: FillOptions, result: RowResult) -> None:
    if options.dry_run:
        logger.info("DRY_RUN enabled - skipped submit for row %s", result.row)
        return
    post = selectors.css("postButton")
    if options.use_post_button and exists(page, post):
        outcome = click_and_wait(page, lambda: script_click(page, post, timeout_ms=options.timeout_ms), options.wait_after_save_ms)
    else:
        save = selectors.css("saveButton")
        outcome = click_and_wait(page, lambda: click(page, save, timeout_ms=options.timeout_ms), options.wait_after_save_ms)
    if outcome:
        logger.info("Submitted row %s", result.row)
        return
    logger.info("Save control not clickable (%s); submitting form directly", outcome.reason)
    if not page.evaluate(_JS_SUBMIT_FORM, selectors.css("formAction")):
        result.errors.append(f"Could not submit form: {outcome.reason}")
        return
    wait_for_settle(page, options.wait_after_save_ms)


def fill_record(
    page: Page,
    row: Mapping[str, Any],
    selectors: SelectorConfig,
    options: FillOptions = FillOptions(),
    index: int = 0,
) -> RowResult:
    """Fill every non-empty field of row, then the dependent actions, submit and redirect.

    Field failures are collected in RowResult.errors and never stop the row.
    Only an exception escaping these steps marks the row failed.
    """
    result = RowResult(row=index, username=str(row.get("UserName") or ""))
    try:
        for header, raw in row.items():
            value = "" if raw is None else str(raw).strip()
            if not value:
                continue
            _fill_field(page, selectors.field_id(str(header)), value, result, options.timeout_ms)

        amount = str(row.get(DISBURSEMENT_AMOUNT) or "").strip()
        if amount and not str(row.get("TotalAmount") or "").strip():
            result.record(
                "TotalAmount",
                set_text(page, selectors.css("totalAmount"), amount, timeout_ms=options.timeout_ms),
                "Could not copy disbursement amount to TotalAmount",
            )

        if _has_sub_details(row, selectors):
            save_details = selectors.css("saveDetails")
            if options.dry_run:
                logger.info("DRY_RUN enabled - skipped sub-detail save for row %s", index)
            elif exists(page, save_details):
                script_click(page, save_details, timeout_ms=options.timeout_ms)
                wait_for_settle(page, options.wait_after_save_ms)

        if options.submit:
            _submit(page, selectors, options, result)
            if options.redirect_url:
                goto(page, options.redirect_url, timeout_ms=15_000)
                wait_for_settle(page, options.timeout_ms)
    except Exception as e:
        logger.error("Row %s failed: %s", index, e)
        result.fail(e)
    return result


def fill_rows(
    page: Page,
    rows: list[Mapping[str, Any]],
    selectors: SelectorConfig,
    options: FillOptions = FillOptions(),
) -> FillReport:
    """Fill the open form once per row."""
    if not rows:
        return FillReport(ok=False, message="No rows in spreadsheet")
    results = []
    for i, row in enumerate(rows):
        logger.info("Filling row %d of %d", i + 1, len(rows))
        result = fill_record(page, row, selectors, options, index=i)
        logger.info("Row %d: %d filled, %d errors", i + 1, len(result.filled), len(result.errors))
        results.append(result)
        wait_for_settle(page, options.timeout_ms)
    return FillReport(ok=True, rows=len(rows), results=results)
