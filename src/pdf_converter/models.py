"""Domain models for image-to-PDF conversion runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .logging import BatchSummary
from .sinks import DeliveryResult


class BatchState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ERROR_LABEL_PREFIX = "Error: "


@dataclass(frozen=True, slots=True)
class ConversionProgress:
    """Reported once per attempted image, successful or not."""

    current: int
    total: int
    percentage: int
    current_label: str
    ok: bool = True

    @classmethod
    def after(cls, current: int, total: int, name: str, *, ok: bool = True) -> "ConversionProgress":
        percentage = int(current * 100 / total + 0.5) if total else 100
        label = name if ok else f"{ERROR_LABEL_PREFIX}{name}"
        return cls(current=current, total=total, percentage=percentage, current_label=label, ok=ok)

    @property
    def fraction(self) -> float:
        return self.percentage / 100


@dataclass(slots=True)
class ConversionResult:
    """Result metadata for a finished batch."""

    run_id: str
    state: BatchState
    delivery: DeliveryResult
    summary: BatchSummary
    captions: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    log_file: Path | None = None

    @property
    def page_count(self) -> int:
        return len(self.captions)

    @property
    def filtered_out(self) -> int:
        return self.summary.filtered_out

    @property
    def output_path(self) -> Path | None:
        return self.delivery.path

    @property
    def pdf_bytes(self) -> bytes | None:
        return self.delivery.blob

    @property
    def size_bytes(self) -> int:
        return self.delivery.size_bytes


__all__ = [
    "BatchState",
    "ConversionProgress",
    "ConversionResult",
    "ERROR_LABEL_PREFIX",
]
