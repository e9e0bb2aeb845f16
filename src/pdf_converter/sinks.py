"""Delivery of a finished PDF: written to disk or kept in memory for download."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Protocol

from .errors import SinkError
from .utils import atomic_write_bytes

Host = Literal["cli", "http", "library"]


@dataclass(slots=True)
class DeliveryResult:
    filename: str
    size_bytes: int
    path: Path | None = None
    blob: bytes | None = None


class Sink(Protocol):
    def deliver(self, blob: bytes, filename: str) -> DeliveryResult:  # pragma: no cover - interface
        ...


class FileSink:
    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    def deliver(self, blob: bytes, filename: str) -> DeliveryResult:
        destination = Path(filename)
        if not destination.is_absolute():
            destination = self._directory / destination
        try:
            atomic_write_bytes(destination, blob)
        except OSError as exc:
            raise SinkError(f"Cannot write {destination}: {exc}") from exc
        return DeliveryResult(filename=destination.name, size_bytes=len(blob), path=destination)


class MemorySink:
    """Keeps the document in memory; the HTTP layer streams it as a download."""

    def __init__(self) -> None:
        self.delivered: DeliveryResult | None = None

    def deliver(self, blob: bytes, filename: str) -> DeliveryResult:
        self.delivered = DeliveryResult(filename=filename, size_bytes=len(blob), blob=blob)
        return self.delivered


def select_sink(host: Host, directory: Path | None = None) -> Sink:
    if host == "cli":
        return FileSink(directory or Path.cwd())
    return MemorySink()


__all__ = ["DeliveryResult", "Sink", "FileSink", "MemorySink", "select_sink"]
