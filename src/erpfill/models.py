"""Records, per-row results and action outcomes. Plain dataclasses, JSON/CSV-serializable."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Optional

LOGIN_FIELDS = ("UserName", "Password", "Language", "LoginDataTime", "ValidateCaptcha", "NextPage")
TRANSACTION_FIELDS = ("FAS_URL", "Field1", "Field2", "Admissionno", "Product", "Amount", "BatchId", "LedgerFolioNo")
RECORD_FIELDS = LOGIN_FIELDS + TRANSACTION_FIELDS
REQUIRED_LOGIN_FIELDS = ("UserName", "Password")

CSV_COLUMNS = ("username", "success", "message", "screenshot", "stateFile", "targetUrl")


@dataclass(frozen=True)
class Record(Mapping):
    """One normalized input row. Every field in RECORD_FIELDS is present (possibly empty)."""
    data: Mapping[str, str] = field(default_factory=dict)
    row: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))

    def __getitem__(self, key: str) -> str:
        return self.data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def __len__(self) -> int:
        return len(self.data)

    @property
    def username(self) -> str:
        return self.data.get("UserName", "")

    def missing(self, names: tuple[str, ...] = REQUIRED_LOGIN_FIELDS) -> list[str]:
        """Names whose value is empty."""
        return [n for n in names if not str(self.data.get(n, "")).strip()]

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, **dict(self.data)}


@dataclass(frozen=True)
class ActionResult:
    ok: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls) -> "ActionResult":
        return cls(True)

    @classmethod
    def failure(cls, reason: str) -> "ActionResult":
        return cls(False, reason)


@dataclass
class RowResult:
    """Outcome of one record: filled fields, field errors, terminal state, output artifacts."""
    row: int = 0
    username: str = ""
    filled: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    ok: bool = True
    exception: Optional[str] = None
    screenshot: str = ""
    state_file: str = ""
    target_url: str = ""

    def record(self, name: str, outcome: ActionResult, what: str = "") -> bool:
        """Add name to filled on success, else a descriptive error. Return outcome as bool."""
        if outcome:
            self.filled.append(name)
        else:
            detail = what or f"Could not set {name}"
            self.errors.append(f"{detail}: {outcome.reason}" if outcome.reason else detail)
        return bool(outcome)

    def fail(self, err: BaseException | str) -> None:
        self.ok = False
        self.exception = str(err)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rowIndex": self.row,
            "username": self.username,
            "ok": self.ok,
            "filled": list(self.filled),
            "errors": list(self.errors),
            "exception": self.exception,
        }

    def to_csv_row(self) -> dict[str, str]:
        return {
            "username": self.username,
            "success": "true" if self.ok else "false",
            "message": self.exception or "OK",
            "screenshot": self.screenshot,
            "stateFile": self.state_file,
            "targetUrl": self.target_url,
        }


@dataclass
class FillReport:
    ok: bool
    rows: int = 0
    results: list[RowResult] = field(default_factory=list)
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"ok": self.ok, "rows": self.rows, "results": [r.to_dict() for r in self.results]}
        if self.message:
            out["message"] = self.message
        return out
