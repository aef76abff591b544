"""Structured errors for erpfill (input, config, login)."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class ERPFillError(Exception):
    """Base for all erpfill errors."""
    message: str
    path: Optional[str] = None
    row: Optional[int] = None

    def __str__(self) -> str:
        loc = ""
        if self.path:
            loc = f"{self.path}:"
        if self.row is not None:
            loc += f"row {self.row}:"
        if loc:
            loc += " "
        return f"{loc}{self.message}"


class InputFileError(ERPFillError):
    """Input spreadsheet is missing, empty, or not a regular file."""
    pass


class SpreadsheetReadError(ERPFillError):
    """Neither the primary nor the fallback parser could read the spreadsheet."""
    pass


class ConfigError(ERPFillError):
    """Bad environment value or selector file."""
    pass


class LoginError(ERPFillError):
    """A login attempt failed. Raised and handled inside the row driver."""
    pass
