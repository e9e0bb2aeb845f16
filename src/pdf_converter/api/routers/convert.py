from __future__ import annotations

import asyncio
from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field

from ...config import AppConfig, PdfConfig
from ...core import ConversionService
from ...errors import ConversionError
from ...library import convert_images_to_pdf, convert_public_images_to_pdf
from ...models import ConversionResult
from ...sources import ImageSource, is_remote
from ...utils import pdf_filename
from ..dependencies import get_config, get_pdf_config, get_service

router = APIRouter(tags=["conversion"])


class PublicConvertRequest(BaseModel):
    paths: list[str] = Field(min_length=1)
    filename: str = "images.pdf"
    base_url: str | None = None
    confirm_large_batch: bool = False
    margin: float | None = Field(None, ge=0)
    font_size: float | None = Field(None, gt=0)
    quality: float | None = Field(None, ge=0.1, le=1.0)
    orientation: str | None = None
    page_size: str | None = None

    def wants_remote(self) -> bool:
        return bool(self.base_url) or any(is_remote(path) for path in self.paths)


def _pdf_response(result: ConversionResult, fetch_failures: int = 0) -> Response:
    headers = {
        "Content-Disposition": f'attachment; filename="{result.delivery.filename}"',
        "X-Run-Id": result.run_id,
        "X-Page-Count": str(result.page_count),
        "X-Skipped-Count": str(result.summary.failures),
        "X-Filtered-Count": str(result.filtered_out),
        "X-Fetch-Failures": str(fetch_failures),
    }
    return Response(content=result.pdf_bytes or b"", media_type="application/pdf", headers=headers)


@router.post("/convert", summary="Convert uploaded images into one PDF")
async def convert_uploads(
    files: List[UploadFile] = File(...),
    filename: str = Form("images.pdf"),
    confirm_large_batch: bool = Form(False),
    pdf_config: PdfConfig = Depends(get_pdf_config),
    service: ConversionService = Depends(get_service),
) -> Response:
    sources: list[ImageSource] = []
    for upload in files:
        content = await upload.read()
        sources.append(
            ImageSource.from_bytes(upload.filename or "upload", content, upload.content_type or None)
        )
    try:
        result = await asyncio.to_thread(
            convert_images_to_pdf,
            sources,
            pdf_config,
            pdf_filename(filename),
            confirm=lambda _total: confirm_large_batch,
            service=service,
        )
    except ConversionError as exc:
        raise HTTPException(status_code=400, detail=exc.code) from exc
    return _pdf_response(result)


@router.post("/convert/public", summary="Convert images from the public directory or remote URLs")
async def convert_public(
    request: PublicConvertRequest,
    config: AppConfig = Depends(get_config),
    service: ConversionService = Depends(get_service),
) -> Response:
    if request.wants_remote() and not config.runtime.allow_remote_fetch:
        raise HTTPException(status_code=400, detail="REMOTE_FETCH_DISABLED")
    try:
        overrides = service.config.pdf.merged(
            request.model_dump(include={"margin", "font_size", "quality", "orientation", "page_size"})
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="INVALID_OPTIONS") from exc
    try:
        result, failures = await asyncio.to_thread(
            convert_public_images_to_pdf,
            request.paths,
            overrides,
            pdf_filename(request.filename),
            base_url=request.base_url,
            confirm=lambda _total: request.confirm_large_batch,
            service=service,
        )
    except ConversionError as exc:
        raise HTTPException(status_code=400, detail=exc.code) from exc
    return _pdf_response(result, len(failures))


__all__ = ["router"]
