"""Transaction payment screen: admission lookup, dropdown cascade, transfer row, amount, save, confirms."""

import logging

from playwright.sync_api import Page

from erpfill.config import Settings
from erpfill.models import ActionResult, Record, RowResult
from erpfill.runtime.tools.web import (
    click,
    click_and_wait,
    exists,
    goto,
    is_disabled,
    is_visible,
    resolve,
    select_option,
    select_second_option,
    set_text,
    wait_for,
    wait_for_settle,
    wait_until,
)
from erpfill.selectors import SelectorConfig

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_FOLIO = "000000"
MAX_CONFIRMS = 2

_JS_HAS_OPTIONS = """(sel) => {
  const el = document.querySelector(sel);
  return !!el && el.querySelectorAll('option').length > 1;
}"""

_JS_CLICK_BATCH_ROW = """(batchId) => {
  const id = String(batchId).trim();
  const input = Array.from(document.querySelectorAll('input')).find(i => {
    const key = (i.id || '').toLowerCase() + '|' + (i.name || '').toLowerCase();
    return key.includes('batchid') && String(i.value).trim() === id;
  });
  let tr = input ? input.closest('tr') : null;
  if (!tr && id) {
    const td = Array.from(document.querySelectorAll('tr td'))
      .find(c => c.textContent && c.textContent.trim().includes(id));
    tr = td ? td.closest('tr') : null;
  }
  if (!tr) {
    tr = Array.from(document.querySelectorAll('tr[onclick]'))
      .find(r => /onRowClick\\s*\\(/.test(r.getAttribute('onclick') || ''));
  }
  if (!tr) return false;
  tr.click();
  return true;
}"""


def _open_form(page: Page, selectors: SelectorConfig, settings: Settings) -> None:
    goto(page, settings.form_url)
    root = selectors.css("formRoot")
    if wait_for(page, root, timeout_ms=3000):
        logger.info("Form root detected - filling the form")
    else:
        logger.info("Form root not found within timeout - waiting for network idle")
        wait_for_settle(page, 3000)


def _await_options(page: Page, selector: str, timeout_ms: int) -> None:
    """Dropdowns here are populated by ajax after the previous choice."""
    wait_until(page, _JS_HAS_OPTIONS, selector, timeout_ms=timeout_ms)


def _click_save(page: Page, selectors: SelectorConfig, settings: Settings) -> bool:
    for selector in selectors.candidates("saveButton"):
        if not exists(page, selector):
            continue
        if is_disabled(page, selector):
            logger.info("Save button found but disabled - treating as saved")
            return True
        if click_and_wait(page, lambda: click(page, selector, timeout_ms=settings.action_timeout_ms), settings.wait_after_save_ms):
            logger.info("Clicked save selector: %s", selector)
            return True
    logger.info("No explicit save button found. Attempting generic form submit")
    generic = resolve(page, selectors.candidates("genericSubmit"))
    if generic and click(page, generic, timeout_ms=settings.action_timeout_ms):
        logger.info("Clicked generic form submit")
        wait_for_settle(page, settings.wait_after_save_ms)
        return True
    return False


def _confirm_dialogs(page: Page, selectors: SelectorConfig, settings: Settings) -> int:
    """Click up to MAX_CONFIRMS visible SweetAlert confirms; returns how many were handled."""
    confirm = selectors.css("sweetConfirm")
    handled = 0
    for i in range(MAX_CONFIRMS):
        if not wait_for(page, confirm, timeout_ms=500, state="visible"):
            break
        if settings.dry_run:
            logger.info("DRY_RUN: would click SweetAlert confirm (#%d)", i + 1)
            return handled
        if not click(page, confirm, timeout_ms=settings.action_timeout_ms):
            break
        handled += 1
        logger.info("Clicked SweetAlert confirm (#%d)", i + 1)
        wait_until(page, "(sel) => !document.querySelector(sel) || !document.querySelector(sel).offsetParent", confirm, timeout_ms=700)
    return handled


def _prepare_disbursement(page: Page, record: Record, selectors: SelectorConfig, settings: Settings, result: RowResult) -> None:
    ledger = selectors.css("ledgerFolio")
    if not wait_for(page, ledger, timeout_ms=2000):
        logger.info("No Disbursement popup / ledger folio field detected after submit")
        return
    folio = record.get("LedgerFolioNo") or DEFAULT_LEDGER_FOLIO
    if settings.dry_run:
        logger.info("DRY_RUN: would fill Ledger Folio Number with %r", folio)
    elif result.record("LedgerFolioNo", set_text(page, ledger, folio, timeout_ms=settings.action_timeout_ms)):
        logger.info("Filled Ledger Folio Number: %s", folio)

    prepare = selectors.css("prepareButton")
    if not wait_for(page, prepare, timeout_ms=2000):
        logger.info("Prepare button not found in Disbursement modal")
        return
    if is_disabled(page, prepare):
        logger.info("Prepare button found but disabled; not clicking")
    elif settings.dry_run:
        logger.info("DRY_RUN: would click Prepare (Disbursement) button")
    elif click(page, prepare, timeout_ms=settings.action_timeout_ms):
        logger.info("Clicked Prepare (Disbursement) button")
        wait_for_settle(page, settings.wait_after_save_ms)


def fill_transaction_payment(page: Page, record: Record, selectors: SelectorConfig, settings: Settings) -> RowResult:
    """Run the payment screen for one record. Step failures become RowResult.errors."""
    result = RowResult(row=record.row, username=record.username)
    timeout = settings.action_timeout_ms
    _open_form(page, selectors, settings)

    product = selectors.css("product")
    admission = record.get("Admissionno", "")
    if admission:
        result.record("Admissionno", set_text(page, selectors.css("admissionInput"), admission, timeout_ms=timeout))
        click(page, selectors.css("iconSearch"), timeout_ms=timeout)
        _await_options(page, product, 5000)

    picked = select_second_option(page, product, timeout_ms=timeout)
    if not picked and record.get("Product"):
        picked = select_option(page, product, record["Product"], timeout_ms=timeout)
    result.record("Product", picked)

    for name, label in (("account", "AccountNo"), ("purpose", "Purpose")):
        selector = selectors.css(name)
        _await_options(page, selector, 3000)
        result.record(label, select_second_option(page, selector, timeout_ms=timeout))

    activity = selectors.css("activityType")
    chosen = select_option(page, activity, "Disbursement", timeout_ms=timeout)
    if not chosen:
        chosen = select_second_option(page, activity, timeout_ms=timeout)
    result.record("ActivityType", chosen)

    click(page, selectors.css("iconSearch"), timeout_ms=timeout)
    wait_for_settle(page, 2000)
    result.record("VoucherType", select_option(page, selectors.css("voucherType"), "Transfer", timeout_ms=timeout))

    batch_id = record.get("BatchId", "")
    try:
        row_clicked = bool(page.evaluate(_JS_CLICK_BATCH_ROW, batch_id))
    except Exception as e:
        logger.debug("transfer row lookup failed: %s", e)
        row_clicked = False
    if row_clicked:
        logger.info("Clicked transfers row for BatchId: %s", batch_id or "(first)")
    result.record("BatchId", ActionResult(row_clicked, "" if row_clicked else "no matching row"), f"Could not locate transfers row for BatchId {batch_id!r}")

    amount = record.get("Amount", "")
    if amount:
        voucher_text = selectors.css("voucherText")
        wait_for(page, voucher_text, timeout_ms=3000)
        result.record("Amount", set_text(page, voucher_text, amount, timeout_ms=timeout, events=("input", "change", "keyup")))

    click(page, selectors.css("iconSearch"), timeout_ms=timeout)
    wait_for_settle(page, 2000)

    if settings.dry_run:
        logger.info("DRY_RUN enabled - skipped save")
    elif not _click_save(page, selectors, settings):
        result.errors.append("No save control found")

    if is_visible(page, selectors.css("errorModal")):
        logger.warning("Error modal visible after attempted save")
        result.errors.append("Error modal visible after save")

    _confirm_dialogs(page, selectors, settings)
    _prepare_disbursement(page, record, selectors, settings, result)
    return result
