"""FastAPI dependency providers for application services."""

from __future__ import annotations

from fastapi import Form, HTTPException, Request

from ..config import AppConfig, PdfConfig
from ..core import ConversionService
from ..jobs import JobManager


def get_config(request: Request) -> AppConfig:
    config = getattr(request.app.state, "config", None)
    if config is None:
        raise HTTPException(status_code=503, detail="CONFIG_UNAVAILABLE")
    return config


def get_service(request: Request) -> ConversionService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="SERVICE_UNAVAILABLE")
    return service


def get_job_manager(request: Request) -> JobManager:
    manager = getattr(request.app.state, "job_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="MANAGER_UNAVAILABLE")
    return manager


def get_pdf_config(
    request: Request,
    margin: float | None = Form(None, ge=0),
    font_size: float | None = Form(None, gt=0),
    quality: float | None = Form(None, ge=0.1, le=1.0),
    orientation: str | None = Form(None),
    page_size: str | None = Form(None),
) -> PdfConfig:
    base = get_config(request).pdf
    try:
        return base.merged(
            {
                "margin": margin,
                "font_size": font_size,
                "quality": quality,
                "orientation": orientation,
                "page_size": page_size,
            }
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="INVALID_OPTIONS") from exc


__all__ = ["get_config", "get_service", "get_job_manager", "get_pdf_config"]
