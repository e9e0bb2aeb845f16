from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse

from ...config import PdfConfig
from ...jobs import JobManager, JobOptions, JobStatus
from ..dependencies import get_job_manager, get_pdf_config
from ..schemas import JobList, JobState, JobSubmitted

router = APIRouter(prefix="/api/v1", tags=["jobs"])


@router.post("/jobs", summary="Submit a conversion job", status_code=202, response_model=JobSubmitted)
async def submit_job(
    files: List[UploadFile] = File(...),
    filename: str = Form("images.pdf"),
    confirm_large_batch: bool = Form(False),
    pdf_config: PdfConfig = Depends(get_pdf_config),
    manager: JobManager = Depends(get_job_manager),
) -> JobSubmitted:
    uploads: list[tuple[str, bytes]] = []
    for upload in files:
        uploads.append((upload.filename or "upload", await upload.read()))
    if not uploads:
        raise HTTPException(status_code=400, detail="EMPTY_SELECTION")
    options = JobOptions(pdf=pdf_config, filename=filename, confirm_large_batch=confirm_large_batch)
    record = manager.submit(uploads, options)
    return JobSubmitted(
        job_id=record.job_id,
        status=record.status.value,
        submitted_at=record.submitted_at,
        total=record.total,
    )


@router.get("/jobs/{job_id}", summary="Retrieve job status and progress", response_model=JobState)
def get_job(job_id: str, manager: JobManager = Depends(get_job_manager)) -> JobState:
    record = manager.get_status(job_id)
    if record is None:
        raise HTTPException(status_code=404, detail="JOB_NOT_FOUND")
    return JobState.from_record(record)


@router.get("/jobs/{job_id}/result", summary="Download the produced PDF")
def get_job_result(job_id: str, manager: JobManager = Depends(get_job_manager)) -> FileResponse:
    record = manager.get_status(job_id)
    if record is None:
        raise HTTPException(status_code=404, detail="JOB_NOT_FOUND")
    if record.status in {JobStatus.QUEUED, JobStatus.RUNNING}:
        raise HTTPException(status_code=409, detail="JOB_NOT_READY")
    path = manager.result_path(job_id)
    if path is None:
        raise HTTPException(status_code=404, detail="RESULT_UNAVAILABLE")
    return FileResponse(path, media_type="application/pdf", filename=path.name)


@router.post("/jobs/{job_id}/cancel", summary="Cancel a queued or running job", response_model=JobState)
def cancel_job(job_id: str, manager: JobManager = Depends(get_job_manager)) -> JobState:
    if not manager.cancel(job_id):
        raise HTTPException(status_code=409, detail="NOT_CANCELABLE")
    record = manager.get_status(job_id)
    if record is None:
        raise HTTPException(status_code=404, detail="JOB_NOT_FOUND")
    return JobState.from_record(record)


@router.get("/jobs", summary="List recent jobs", response_model=JobList)
def list_jobs(
    limit: int = Query(50, ge=1, le=500),
    manager: JobManager = Depends(get_job_manager),
) -> JobList:
    return JobList(jobs=manager.list_jobs(limit))


__all__ = ["router"]
