"""Logging collaborator and JSON report output."""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from hulud_scanner.models import Finding, ScanSummary

LOGGER_NAME = "hulud_scanner"
SCAN_LOGGER_NAME = "hulud_scanner.scan"


def setup_logging(log_path: str, level: str = "INFO") -> logging.Logger:
    """Console plus file logging for one run. Returns the scan logger."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.handlers.clear()
    package_logger.setLevel(numeric_level)
    package_logger.propagate = False

    if log_path:
        os.makedirs(os.path.dirname(os.path.abspath(log_path)), exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        package_logger.addHandler(file_handler)

    # stdout carries the progress and summary prints, the console only gets problems
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    package_logger.addHandler(console_handler)

    return logging.getLogger(SCAN_LOGGER_NAME)


class ScanLog:
    """Append-only channel the orchestrator writes messages and the summary to."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(SCAN_LOGGER_NAME)

    def message(self, text: str) -> None:
        self.logger.info(text)

    def block(self, title: str, lines: Iterable[str]) -> None:
        body = "\n".join(f"    {line}" for line in lines)
        self.logger.info("%s\n%s", title, body)

    def summary(self, summary: ScanSummary) -> None:
        self.logger.info(
            "Scan summary: %d volume(s), %d repositories, high=%d medium=%d low=%d, %d error(s)",
            summary.drive_count,
            summary.repository_count,
            summary.high_count,
            summary.medium_count,
            summary.low_count,
            summary.error_count,
            extra={"summary": summary.to_dict()},
        )


def write_json(path: str, summary: ScanSummary, findings: List[Finding]) -> None:
    report = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "summary": summary.to_dict(),
        "findings": [
            {
                "severity": f.severity.value,
                "category": f.category.value,
                "repo_path": f.repo_path,
                "detail": f.detail,
                "file_path": f.file_path,
            }
            for f in findings
        ],
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2)
        f.write("\n")
