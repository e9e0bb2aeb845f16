from __future__ import annotations

import csv
import json
import threading
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from io import StringIO

from .utils import atomic_write


@dataclass(slots=True)
class StageTimings:
    prepare_ms: float = 0.0
    layout_ms: float = 0.0
    draw_ms: float = 0.0


@dataclass(slots=True)
class RunLogEntry:
    run_id: str
    source: str
    status: str
    mime_type: str
    warnings: list[str]
    error_code: str | None
    timings: StageTimings
    page: int | None
    size_bytes: int

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["timings"] = asdict(self.timings)
        return payload


class RunLogger:
    def __init__(self, log_file: Path) -> None:
        self._log_file = log_file

    @property
    def path(self) -> Path:
        return self._log_file

    def append(self, entry: RunLogEntry) -> None:
        self._log_file.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        with self._log_file.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")


@dataclass(slots=True)
class BatchSummary:
    timestamp: float = field(default_factory=time.time)
    total: int = 0
    successes: int = 0
    failures: int = 0
    filtered_out: int = 0
    state: str = "idle"
    warnings: dict[str, int] = field(default_factory=dict)

    def count_warning(self, code: str) -> None:
        self.warnings[code] = self.warnings.get(code, 0) + 1

    def as_row(self, run_id: str) -> list[str]:
        warning_json = json.dumps(self.warnings, sort_keys=True)
        return [
            run_id,
            time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.timestamp)),
            str(self.total),
            str(self.successes),
            str(self.failures),
            str(self.filtered_out),
            self.state,
            warning_json,
        ]


_SUMMARY_LOCK = threading.Lock()

SUMMARY_HEADER = [
    "run_id",
    "timestamp",
    "total",
    "successes",
    "failures",
    "filtered_out",
    "state",
    "warnings",
]


def write_summary_csv(path: Path, header: list[str], rows: list[list[str]]) -> None:
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(header)
    writer.writerows(rows)
    atomic_write(path, buffer.getvalue())


def append_summary_row(path: Path, run_id: str, summary: BatchSummary) -> None:
    with _SUMMARY_LOCK:
        header = SUMMARY_HEADER
        rows: list[list[str]] = []
        if path.exists():
            with path.open("r", encoding="utf-8", newline="") as handle:
                reader = list(csv.reader(handle))
            if reader:
                header = reader[0]
                rows = reader[1:]
        rows.append(summary.as_row(run_id))
        write_summary_csv(path, header, rows)
