"""Run outputs: timestamped log file and the append-only results CSV."""

import csv
import logging
from datetime import datetime
from pathlib import Path

from erpfill.models import CSV_COLUMNS, RowResult

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def configure_logging(logs_dir: Path, verbose: bool = False) -> Path:
    """Send erpfill.* logs to logs_dir/run_<timestamp>.log and the console. Returns the log path."""
    logs_dir = Path(logs_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"run_{datetime.now():%Y%m%d_%H%M%S_%f}.log"

    logger = logging.getLogger("erpfill")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(file_handler)
    logger.addHandler(console)
    return log_path


class ResultsWriter:
    """Appends one CSV row per RowResult; the header is written only when the file is new."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.count = 0

    def write(self, result: RowResult) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        new_file = not self.path.exists() or self.path.stat().st_size == 0
        with open(self.path, "a", newline="", encoding="utf-8") as f:
            w = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
            if new_file:
                w.writeheader()
            w.writerow(result.to_csv_row())
        self.count += 1
