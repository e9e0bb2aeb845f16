from __future__ import annotations

import time
from pathlib import Path

from pdf_converter.config import AppConfig, RuntimeConfig
from pdf_converter.core import ConversionService
from pdf_converter.jobs import JobManager, JobOptions, JobStatus


def build_manager(tmp_path: Path, **runtime_overrides) -> JobManager:
    runtime = RuntimeConfig(output_dir=tmp_path, enable_local_api=True, **runtime_overrides)
    runtime.jobs.worker_pool_size = 1
    config = AppConfig(runtime=runtime)
    service = ConversionService(config, sleep=lambda _seconds: None)
    return JobManager(config, service)


def wait_for_status(manager: JobManager, job_id: str, status: JobStatus) -> None:
    for _ in range(200):
        record = manager.get_status(job_id)
        if record and record.status is status:
            return
        time.sleep(0.05)
    raise AssertionError(f"Job {job_id} did not reach {status}")


def test_job_manager_completes_and_stores_pdf(tmp_path, png_bytes):
    manager = build_manager(tmp_path)
    try:
        uploads = [("b.png", png_bytes()), ("a.png", png_bytes()), ("notes.txt", b"skip me")]
        record = manager.submit(uploads, JobOptions(filename="My Album"))
        assert record.status is JobStatus.QUEUED
        assert record.total == 3
        wait_for_status(manager, record.job_id, JobStatus.SUCCEEDED)
        final = manager.get_status(record.job_id)
        assert final is not None
        assert final.progress == 1.0
        assert final.page_count == 2
        assert final.current == 2
        path = manager.result_path(record.job_id)
        assert path is not None
        assert path.name == "My-Album.pdf"
        assert path.read_bytes().startswith(b"%PDF")
        assert any(job["job_id"] == record.job_id for job in manager.list_jobs())
    finally:
        manager.shutdown()


def test_job_with_no_usable_images_fails(tmp_path, png_bytes):
    manager = build_manager(tmp_path)
    try:
        record = manager.submit([("broken.png", b"garbage")], JobOptions())
        wait_for_status(manager, record.job_id, JobStatus.FAILED)
        final = manager.get_status(record.job_id)
        assert final is not None
        assert final.error_code == "NO_IMAGES"
        assert manager.result_path(record.job_id) is None
    finally:
        manager.shutdown()


def test_unconfirmed_large_job_is_canceled(tmp_path, png_bytes):
    manager = build_manager(tmp_path, large_batch_threshold=1)
    try:
        uploads = [("a.png", png_bytes()), ("b.png", png_bytes())]
        record = manager.submit(uploads, JobOptions(confirm_large_batch=False))
        wait_for_status(manager, record.job_id, JobStatus.CANCELED)
        final = manager.get_status(record.job_id)
        assert final is not None
        assert final.error_code == "CANCELED"
    finally:
        manager.shutdown()


def test_cancel_unknown_job(tmp_path):
    manager = build_manager(tmp_path)
    try:
        assert manager.cancel("job-missing") is False
        assert manager.get_status("job-missing") is None
    finally:
        manager.shutdown()
