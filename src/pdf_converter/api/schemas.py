from __future__ import annotations

from pydantic import BaseModel

from ..jobs import JobRecord


class HealthStatus(BaseModel):
    status: str
    version: str


class JobSubmitted(BaseModel):
    job_id: str
    status: str
    submitted_at: str | None = None
    total: int


class JobProgress(BaseModel):
    current: int
    total: int
    percentage: int
    current_label: str | None = None


class JobState(BaseModel):
    job_id: str
    status: str
    progress: JobProgress
    submitted_at: str | None = None
    started_at: str | None = None
    finished_at: str | None = None
    warnings: list[str] = []
    error_code: str | None = None
    error_message: str | None = None
    page_count: int = 0
    size_bytes: int = 0

    @classmethod
    def from_record(cls, record: JobRecord) -> "JobState":
        return cls(
            job_id=record.job_id,
            status=record.status.value,
            progress=JobProgress(
                current=record.current,
                total=record.total,
                percentage=round(record.progress * 100),
                current_label=record.current_label,
            ),
            submitted_at=record.submitted_at,
            started_at=record.started_at,
            finished_at=record.finished_at,
            warnings=record.warnings,
            error_code=record.error_code,
            error_message=record.error_message,
            page_count=record.page_count,
            size_bytes=record.size_bytes,
        )


class JobList(BaseModel):
    jobs: list[dict[str, object]]
