"""CLI entry point: run, disburse, read, selectors."""

import json
from pathlib import Path
from typing import NoReturn, Optional

import typer
from dotenv import find_dotenv, load_dotenv

from erpfill import __version__
from erpfill.config import Settings
from erpfill.errors import ConfigError, ERPFillError
from erpfill.models import Record
from erpfill.report import configure_logging
from erpfill.runtime.driver import run, run_disbursement
from erpfill.runtime.form_fill import FillOptions
from erpfill.runtime.tools.excel import export_rows, normalize_row, read_records
from erpfill.selectors import SelectorConfig, load_selectors

app = typer.Typer(
    name="erpfill",
    help="Fill ERP web forms from spreadsheet rows (login, transaction payment, loan disbursement).",
)


def _fail(e: Exception) -> NoReturn:
    typer.echo(f"Error: {e}", err=True)
    raise typer.Exit(1)


def _settings(**overrides) -> Settings:
    try:
        return Settings.from_env().override(**overrides)
    except ERPFillError as e:
        _fail(e)


def _selectors(path: Optional[Path], settings: Settings) -> SelectorConfig:
    try:
        return load_selectors(path or settings.selectors_file)
    except ERPFillError as e:
        _fail(e)


@app.command("run")
def run_cmd(
    input: Optional[Path] = typer.Option(None, "--input", "-i", help="Spreadsheet (default: EXCEL_PATH)"),
    dry_run: Optional[bool] = typer.Option(None, "--dry-run/--no-dry-run", help="Fill forms but never click save/submit"),
    headless: Optional[bool] = typer.Option(None, "--headless/--headed", help="Browser visibility (default: HEADLESS)"),
    max_rows: Optional[int] = typer.Option(None, "--max-rows", help="Process at most N rows"),
    selectors: Optional[Path] = typer.Option(None, "--selectors", help="YAML selector overrides"),
    logs_dir: Optional[Path] = typer.Option(None, "--logs-dir", help="Where logs, screenshots and results.csv go"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Log in and fill the transaction payment form for every spreadsheet row."""
    settings = _settings(excel_path=input, dry_run=dry_run, headless=headless, max_rows=max_rows, logs_dir=logs_dir)
    config = _selectors(selectors, settings)
    log_path = configure_logging(settings.logs_dir, verbose=verbose)
    try:
        results = run(settings, config)
    except ERPFillError as e:
        _fail(e)
    succeeded = sum(1 for r in results if r.ok)
    typer.echo(
        f"Processed {len(results)} rows: {succeeded} succeeded, {len(results) - succeeded} failed."
        + (" (dry run)" if settings.dry_run else "")
    )
    typer.echo(f"Results: {Path(settings.logs_dir) / 'results.csv'}")
    typer.echo(f"Log: {log_path}")


@app.command("disburse")
def disburse_cmd(
    input: Path = typer.Argument(..., help="Spreadsheet whose headers are loan form field ids"),
    url: Optional[str] = typer.Option(None, "--url", help="Loan disbursement form URL (default: FORM_URL)"),
    submit: bool = typer.Option(False, "--submit", help="Click Save after each row"),
    use_post: bool = typer.Option(False, "--use-post", help="Submit through the hidden post control"),
    redirect: Optional[str] = typer.Option(None, "--redirect", help="Open this URL after each submit"),
    username: Optional[str] = typer.Option(None, "--username", envvar="ERP_USERNAME", help="Login user"),
    password: Optional[str] = typer.Option(None, "--password", envvar="ERP_PASSWORD", help="Login password"),
    state: Optional[Path] = typer.Option(None, "--state", help="Reuse a saved session state JSON instead of logging in"),
    out: Optional[Path] = typer.Option(None, "--out", help="Also export per-row results (.csv or .xlsx)"),
    dry_run: Optional[bool] = typer.Option(None, "--dry-run/--no-dry-run", help="Never click save/submit"),
    headless: Optional[bool] = typer.Option(None, "--headless/--headed"),
    selectors: Optional[Path] = typer.Option(None, "--selectors", help="YAML selector overrides"),
    logs_dir: Optional[Path] = typer.Option(None, "--logs-dir"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Fill the loan disbursement form once per spreadsheet row and print a JSON report."""
    settings = _settings(dry_run=dry_run, headless=headless, logs_dir=logs_dir)
    config = _selectors(selectors, settings)
    configure_logging(settings.logs_dir, verbose=verbose)
    credentials = None
    if state is None:
        if username and password:
            credentials = Record(normalize_row({"UserName": username, "Password": password}), row=0)
        else:
            try:
                first = read_records(input)
            except ERPFillError as e:
                _fail(e)
            if first and not first[0].missing():
                credentials = first[0]
        if credentials is None:
            _fail(ConfigError("No credentials: pass --username/--password, --state, or a first row with UserName/Password"))
    options = FillOptions.from_settings(settings, submit=submit, use_post_button=use_post, redirect_url=redirect)
    try:
        report = run_disbursement(settings, config, input, url or settings.form_url, options, credentials, state)
    except ERPFillError as e:
        _fail(e)
    typer.echo(json.dumps(report.to_dict(), indent=2))
    if out is not None and report.results:
        typer.echo(f"Exported: {export_rows([r.to_dict() for r in report.results], out)}")
    if not report.ok:
        raise typer.Exit(1)


@app.command("read")
def read_cmd(input: Path = typer.Argument(..., help="Spreadsheet")):
    """Print normalized records as JSON lines (debug the header mapping)."""
    try:
        records = read_records(input)
    except ERPFillError as e:
        _fail(e)
    for record in records:
        typer.echo(json.dumps(record.to_dict()))
    typer.echo(f"Read {len(records)} rows.", err=True)


@app.command("selectors")
def selectors_cmd(selectors: Optional[Path] = typer.Option(None, "--selectors", help="YAML selector overrides")):
    """Print the effective selector configuration as YAML."""
    config = _selectors(selectors, _settings())
    typer.echo(config.to_yaml())


def _version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(False, "--version", callback=_version, is_eager=True, help="Show version and exit"),
):
    """erpfill: spreadsheet-driven ERP form automation. Reads ./.env before any command."""
    load_dotenv(find_dotenv(usecwd=True))


if __name__ == "__main__":
    app()
