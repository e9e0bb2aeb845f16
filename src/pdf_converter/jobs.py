from __future__ import annotations

import json
import os
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Sequence

from concurrent.futures import Future, ThreadPoolExecutor

from .config import AppConfig, PdfConfig
from .core import ConversionService
from .errors import ConversionError
from .models import BatchState, ConversionProgress, ConversionResult
from .sinks import FileSink
from .sources import ImageSource
from .utils import atomic_write, generate_run_id, pdf_filename, slugify


ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).strftime(ISO_FORMAT)


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


@dataclass(slots=True)
class JobOptions:
    pdf: PdfConfig = field(default_factory=PdfConfig)
    filename: str = "images.pdf"
    confirm_large_batch: bool = False

    def as_dict(self) -> dict[str, object]:
        return {
            "pdf": self.pdf.as_dict(),
            "filename": self.filename,
            "confirm_large_batch": self.confirm_large_batch,
        }


@dataclass(slots=True)
class JobRecord:
    job_id: str
    status: JobStatus
    progress: float = 0.0
    current: int = 0
    total: int = 0
    current_label: str | None = None
    submitted_at: str | None = None
    started_at: str | None = None
    finished_at: str | None = None
    warnings: list[str] = field(default_factory=list)
    error_code: str | None = None
    error_message: str | None = None
    output_path: str | None = None
    page_count: int = 0
    size_bytes: int = 0
    options: dict[str, object] = field(default_factory=dict)

    def to_payload(self) -> dict[str, object | None]:
        payload = asdict(self)
        payload["status"] = self.status.value
        return payload

    @classmethod
    def from_payload(cls, data: dict[str, object]) -> "JobRecord":
        warnings_value = data.get("warnings")
        return cls(
            job_id=str(data.get("job_id")),
            status=JobStatus(str(data.get("status", JobStatus.QUEUED.value))),
            progress=float(data.get("progress", 0.0)),
            current=int(data.get("current", 0)),
            total=int(data.get("total", 0)),
            current_label=str(data["current_label"]) if data.get("current_label") else None,
            submitted_at=str(data["submitted_at"]) if data.get("submitted_at") else None,
            started_at=str(data["started_at"]) if data.get("started_at") else None,
            finished_at=str(data["finished_at"]) if data.get("finished_at") else None,
            warnings=[str(item) for item in warnings_value] if isinstance(warnings_value, list) else [],
            error_code=str(data["error_code"]) if data.get("error_code") else None,
            error_message=str(data["error_message"]) if data.get("error_message") else None,
            output_path=str(data["output_path"]) if data.get("output_path") else None,
            page_count=int(data.get("page_count", 0)),
            size_bytes=int(data.get("size_bytes", 0)),
            options=dict(data["options"]) if isinstance(data.get("options"), dict) else {},
        )


class JobStore:
    def __init__(self, config: AppConfig) -> None:
        self._root = config.runtime.output_dir
        self._index_dir = self._root / "_index"
        self._jobs_index = self._index_dir / "jobs.jsonl"
        self._latest_file = self._index_dir / "latest.json"
        self._lock = threading.Lock()
        self._index_dir.mkdir(parents=True, exist_ok=True)

    def run_dir(self, job_id: str) -> Path:
        path = self._root / job_id
        path.mkdir(parents=True, exist_ok=True)
        return path

    def status_path(self, job_id: str) -> Path:
        return self._root / job_id / "status.json"

    def write_status(self, record: JobRecord) -> None:
        atomic_write(self.status_path(record.job_id), json.dumps(record.to_payload(), indent=2))

    def read_status(self, job_id: str) -> JobRecord | None:
        path = self.status_path(job_id)
        if not path.exists():
            return None
        return JobRecord.from_payload(json.loads(path.read_text(encoding="utf-8")))

    def append_index(self, record: JobRecord) -> None:
        payload = json.dumps(record.to_payload())
        with self._lock:
            with self._jobs_index.open("a", encoding="utf-8") as handle:
                handle.write(payload + "\n")
            latest = self._load_latest()
            latest.append(record.to_payload())
            latest = latest[-200:]
            atomic_write(self._latest_file, json.dumps(latest, indent=2))

    def _load_latest(self) -> list[dict[str, object]]:
        if not self._latest_file.exists():
            return []
        try:
            return json.loads(self._latest_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return []

    def list_latest(self, limit: int = 50) -> list[dict[str, object]]:
        latest = self._load_latest()
        if limit <= 0:
            return latest
        return latest[-limit:]


@dataclass(slots=True)
class JobHandle:
    job_id: str
    sources: list[ImageSource]
    run_dir: Path
    options: JobOptions
    cancel_event: threading.Event
    submitted_at: datetime


class JobManager:
    """Runs conversions in the background and persists their progress."""

    def __init__(self, config: AppConfig, service: ConversionService) -> None:
        self._config = config
        self._service = service
        self._store = JobStore(config)
        pool_size = config.runtime.jobs.worker_pool_size
        if pool_size <= 0:
            pool_size = min(4, max(1, os.cpu_count() or 1))
        self._executor = ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="job-worker")
        self._jobs: dict[str, JobHandle] = {}
        self._futures: dict[str, Future[ConversionResult | None]] = {}
        self._lock = threading.Lock()
        # One writer per status file; progress events and cancel may race otherwise.
        self._status_lock = threading.Lock()

    def submit(self, uploads: Sequence[tuple[str, bytes]], options: JobOptions) -> JobRecord:
        submitted = _utc_now()
        job_id = generate_run_id("job")
        run_dir = self._store.run_dir(job_id)
        input_dir = run_dir / "input"
        input_dir.mkdir(parents=True, exist_ok=True)
        sources: list[ImageSource] = []
        for position, (filename, payload) in enumerate(uploads):
            display_name = Path(filename or "upload").name
            staged = input_dir / f"{position:05d}-{slugify(display_name)}"
            staged.write_bytes(payload)
            sources.append(ImageSource.from_path(staged, display_name=display_name))

        record = JobRecord(
            job_id=job_id,
            status=JobStatus.QUEUED,
            total=len(sources),
            submitted_at=_iso(submitted),
            options=options.as_dict(),
        )
        self._store.write_status(record)
        self._store.append_index(record)

        handle = JobHandle(
            job_id=job_id,
            sources=sources,
            run_dir=run_dir,
            options=options,
            cancel_event=threading.Event(),
            submitted_at=submitted,
        )
        with self._lock:
            self._jobs[job_id] = handle
            self._futures[job_id] = self._executor.submit(self._run_job, handle)
        return record

    def _run_job(self, handle: JobHandle) -> ConversionResult | None:
        try:
            return self._execute_job(handle)
        finally:
            with self._lock:
                self._jobs.pop(handle.job_id, None)
                self._futures.pop(handle.job_id, None)

    def _execute_job(self, handle: JobHandle) -> ConversionResult | None:
        if handle.cancel_event.is_set():
            self._update_status(handle.job_id, JobStatus.CANCELED, finished_at=_iso(_utc_now()))
            self._append_terminal(handle.job_id)
            return None
        self._update_status(handle.job_id, JobStatus.RUNNING, started_at=_iso(_utc_now()))

        def _progress(event: ConversionProgress) -> None:
            self._update_status(
                handle.job_id,
                JobStatus.RUNNING,
                progress=event.fraction,
                current=event.current,
                total=event.total,
                current_label=event.current_label,
            )

        try:
            result = self._service.convert(
                handle.sources,
                pdf_config=handle.options.pdf,
                filename=pdf_filename(handle.options.filename),
                progress=_progress,
                confirm=lambda _total: handle.options.confirm_large_batch,
                cancellation=handle.cancel_event,
                sink=FileSink(handle.run_dir),
                run_id=handle.job_id,
            )
        except ConversionError as exc:
            status = JobStatus.CANCELED if exc.code == "CANCELED" else JobStatus.FAILED
            self._update_status(
                handle.job_id,
                status,
                finished_at=_iso(_utc_now()),
                error_code=exc.code,
                error_message=str(exc),
            )
            self._append_terminal(handle.job_id)
            return None
        except Exception as exc:  # pragma: no cover - unexpected paths
            self._update_status(
                handle.job_id,
                JobStatus.FAILED,
                finished_at=_iso(_utc_now()),
                error_code="UNKNOWN",
                error_message=str(exc),
            )
            self._append_terminal(handle.job_id)
            raise

        if result.state is BatchState.CANCELLED:
            status = JobStatus.CANCELED
            if not self._config.runtime.jobs.keep_partials and result.output_path:
                result.output_path.unlink(missing_ok=True)
        else:
            status = JobStatus.SUCCEEDED
        output = result.output_path if result.output_path and result.output_path.exists() else None
        self._update_status(
            handle.job_id,
            status,
            progress=1.0 if status is JobStatus.SUCCEEDED else None,
            finished_at=_iso(_utc_now()),
            warnings=result.warnings,
            output_path=str(output.resolve()) if output else None,
            page_count=result.page_count,
            size_bytes=result.size_bytes if output else 0,
        )
        self._append_terminal(handle.job_id)
        return result

    def _update_status(self, job_id: str, status: JobStatus, **changes: object) -> None:
        """Merge *changes* into the stored record; ``None`` values leave fields untouched."""
        with self._status_lock:
            record = self._store.read_status(job_id) or JobRecord(job_id=job_id, status=status)
            if record.status is JobStatus.CANCELED and status is JobStatus.RUNNING:
                return
            record.status = status
            progress = changes.pop("progress", None)
            if isinstance(progress, float):
                # Progress never moves backwards.
                record.progress = max(record.progress, min(progress, 1.0))
            for name, value in changes.items():
                if value is not None:
                    setattr(record, name, value)
            self._store.write_status(record)

    def _append_terminal(self, job_id: str) -> None:
        record = self._store.read_status(job_id)
        if record:
            self._store.append_index(record)

    def cancel(self, job_id: str) -> bool:
        with self._lock:
            handle = self._jobs.get(job_id)
        if not handle:
            return False
        handle.cancel_event.set()
        return True

    def get_status(self, job_id: str) -> JobRecord | None:
        return self._store.read_status(job_id)

    def result_path(self, job_id: str) -> Path | None:
        record = self._store.read_status(job_id)
        if record is None or not record.output_path:
            return None
        path = Path(record.output_path)
        return path if path.exists() else None

    def list_jobs(self, limit: int = 50) -> list[dict[str, object]]:
        return self._store.list_latest(limit)

    def wait(self, job_id: str, timeout: float | None = None) -> None:
        with self._lock:
            future = self._futures.get(job_id)
        if future is not None:
            future.result(timeout=timeout)

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait)


__all__ = [
    "JobManager",
    "JobOptions",
    "JobRecord",
    "JobStatus",
]
