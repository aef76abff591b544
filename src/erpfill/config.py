"""Run settings from environment variables."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional

from erpfill.errors import ConfigError

DEFAULT_LOGIN_URL = "https://example.com/Home"
DEFAULT_FORM_URL = "https://up6.uniteerp.in/FAS/TransactionPayment/TransactionPayment?formid=40004&moduleid=3"

_TRUE = {"1", "true", "yes", "on"}


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE


def _env_int(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """Everything the row driver needs besides selectors."""
    login_url: str = DEFAULT_LOGIN_URL
    headless: bool = False
    excel_path: Path = Path("./data/input.xlsx")
    captcha_wait_ms: int = 300_000
    save_screenshot_on_success: bool = False
    retry_login: int = 1
    wait_after_save_ms: int = 1000
    dry_run: bool = False
    max_rows: Optional[int] = None
    fas_url: Optional[str] = None
    form_url: str = DEFAULT_FORM_URL
    logs_dir: Path = Path("./logs")
    selectors_file: Optional[Path] = None
    action_timeout_ms: int = 4000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environ (default os.environ; the CLI loads ./.env into it first)."""
        env = os.environ if environ is None else environ
        selectors_file = env.get("SELECTORS_FILE") or None
        max_rows = _env_int(env, "MAX_ROWS", None)
        return cls(
            login_url=env.get("TARGET_LOGIN_URL") or DEFAULT_LOGIN_URL,
            headless=_env_bool(env, "HEADLESS", False),
            excel_path=Path(env.get("EXCEL_PATH") or "./data/input.xlsx"),
            captcha_wait_ms=_env_int(env, "CAPTCHA_WAIT_MS", 300_000),
            save_screenshot_on_success=_env_bool(env, "SAVE_SCREENSHOT_ON_SUCCESS", False),
            retry_login=_env_int(env, "RETRY_LOGIN", 1),
            wait_after_save_ms=_env_int(env, "WAIT_AFTER_SAVE_MS", 1000),
            dry_run=_env_bool(env, "DRY_RUN", False),
            max_rows=max_rows if max_rows and max_rows > 0 else None,
            fas_url=env.get("FAS_URL") or env.get("GLOBAL_FAS_URL") or None,
            form_url=env.get("FORM_URL") or DEFAULT_FORM_URL,
            logs_dir=Path(env.get("LOGS_DIR") or "./logs"),
            selectors_file=Path(selectors_file) if selectors_file else None,
            action_timeout_ms=_env_int(env, "ACTION_TIMEOUT_MS", 4000),
        )

    def override(self, **changes: Any) -> "Settings":
        """Copy with CLI overrides applied; None values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @property
    def login_attempts(self) -> int:
        return max(1, self.retry_login)
