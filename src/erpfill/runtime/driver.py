"""Row driver: for each record, log in, run the form workflow, write a result row."""

import logging
import time
from pathlib import Path
from typing import Callable, Optional

from playwright.sync_api import BrowserContext, Page

from erpfill.config import Settings
from erpfill.models import LOGIN_FIELDS, FillReport, Record, RowResult
from erpfill.report import ResultsWriter
from erpfill.runtime.form_fill import FillOptions, fill_rows
from erpfill.runtime.login import login
from erpfill.runtime.payment import fill_transaction_payment
from erpfill.runtime.session import open_browser, save_screenshot, save_state
from erpfill.runtime.tools.excel import FIELD_ALIASES, read_records, read_rows
from erpfill.runtime.tools.web import goto, wait_for
from erpfill.selectors import SelectorConfig

logger = logging.getLogger(__name__)

FormWorkflow = Callable[[Page, Record, SelectorConfig, Settings], RowResult]

USERNAME_WAIT_MS = 10_000

# Lower-cased headers that only carry login data; never typed into the loan form.
LOGIN_HEADERS = frozenset(alias.lower() for name in LOGIN_FIELDS for alias in FIELD_ALIASES.get(name, (name,)))


def target_url(record: Record, settings: Settings) -> str:
    return record.get("FAS_URL") or record.get("NextPage") or settings.fas_url or settings.login_url


def process_record(
    page: Page,
    context: BrowserContext,
    record: Record,
    selectors: SelectorConfig,
    settings: Settings,
    form: FormWorkflow = fill_transaction_payment,
) -> RowResult:
    """Login then form for one record. Never raises; failures end up in the RowResult."""
    username = record.username or f"user_{int(time.time() * 1000)}"
    result = RowResult(row=record.row, username=username)

    missing = record.missing()
    if missing:
        logger.warning("Row %d skipped: missing %s", record.row, ", ".join(missing))
        result.fail(f"Missing required field: {', '.join(missing)}")
        return result

    try:
        logger.info("=== Processing %s (row %d) ===", username, record.row)
        goto(page, settings.login_url)
        wait_for(page, selectors.css("userName"), timeout_ms=USERNAME_WAIT_MS)

        outcome = login(page, record, selectors, settings)
        if not outcome.ok:
            result.screenshot = save_screenshot(page, settings.logs_dir, username, "login_failed")
            result.target_url = settings.login_url
            result.fail(f"Login failed: {outcome.error or 'still on login page'}")
            logger.warning("Login may have failed for %s after %d attempt(s). Screenshot: %s", username, outcome.attempts, result.screenshot)
            return result

        logger.info("Login success for %s", username)
        result.state_file = save_state(context, settings.logs_dir, username)

        form_result = form(page, record, selectors, settings)
        result.filled.extend(form_result.filled)
        result.errors.extend(form_result.errors)
        if not form_result.ok:
            result.fail(form_result.exception or "form workflow failed")
        for err in form_result.errors:
            logger.info("  field error: %s", err)

        if settings.save_screenshot_on_success:
            result.screenshot = save_screenshot(page, settings.logs_dir, username, "success")
        result.target_url = target_url(record, settings)
        logger.info("Done for %s (%d filled, %d field errors)", username, len(result.filled), len(result.errors))
    except Exception as e:
        logger.error("Error processing %s: %s", username, e, exc_info=True)
        result.screenshot = save_screenshot(page, settings.logs_dir, username, "error")
        result.fail(e)
    return result


def process_records(
    page: Page,
    context: BrowserContext,
    records: list[Record],
    selectors: SelectorConfig,
    settings: Settings,
    writer: ResultsWriter,
    form: FormWorkflow = fill_transaction_payment,
) -> list[RowResult]:
    """Process records in order, up to settings.max_rows. One bad record never stops the rest."""
    results: list[RowResult] = []
    for record in records:
        if settings.max_rows and settings.max_rows > 0 and len(results) >= settings.max_rows:
            logger.info("MAX_ROWS=%d reached", settings.max_rows)
            break
        result = process_record(page, context, record, selectors, settings, form)
        writer.write(result)
        results.append(result)
    return results


def run(settings: Settings, selectors: SelectorConfig, form: FormWorkflow = fill_transaction_payment) -> list[RowResult]:
    """Read the spreadsheet, open one browser, and process every record. Input errors are fatal."""
    logger.info("Starting automation. HEADLESS=%s DRY_RUN=%s", settings.headless, settings.dry_run)
    records = read_records(settings.excel_path)
    logger.info("Read %d rows from spreadsheet: %s", len(records), settings.excel_path)
    writer = ResultsWriter(Path(settings.logs_dir) / "results.csv")
    with open_browser(settings) as (context, page):
        results = process_records(page, context, records, selectors, settings, writer, form)
    logger.info("All done.")
    return results


def run_disbursement(
    settings: Settings,
    selectors: SelectorConfig,
    input_path: Path,
    form_url: str,
    options: FillOptions,
    credentials: Optional[Record] = None,
    storage_state: Optional[Path] = None,
) -> FillReport:
    """Log in (unless reusing storage_state), open the loan form and fill it once per spreadsheet row."""
    rows = [
        {k: v for k, v in row.items() if str(k).strip().lower() not in LOGIN_HEADERS}
        for row in read_rows(input_path)
    ]
    logger.info("Read %d rows from spreadsheet: %s", len(rows), input_path)
    with open_browser(settings, storage_state) as (context, page):
        if credentials is not None:
            goto(page, settings.login_url)
            wait_for(page, selectors.css("userName"), timeout_ms=USERNAME_WAIT_MS)
            outcome = login(page, credentials, selectors, settings)
            if not outcome.ok:
                shot = save_screenshot(page, settings.logs_dir, credentials.username, "login_failed")
                logger.warning("Login failed for %s. Screenshot: %s", credentials.username, shot)
                return FillReport(ok=False, message=f"Login failed: {outcome.error or 'still on login page'}")
        goto(page, form_url)
        wait_for(page, selectors.css("formRoot"), timeout_ms=USERNAME_WAIT_MS)
        return fill_rows(page, rows, selectors, options)
