"""Convenience entry points for callers that do not manage a service."""

from __future__ import annotations

from pathlib import Path
from threading import Event
from typing import Iterable, Mapping, Sequence

import requests

from .config import AppConfig, PdfConfig, load_config
from .core import ConfirmCallback, ConversionService, ProgressCallback
from .errors import InputError
from .models import ConversionResult
from .sinks import FileSink, select_sink
from .sources import FetchFailure, ImageSource, fetch_sources, list_folder, sources_from_paths

ConfigOverrides = PdfConfig | Mapping[str, object] | None


def _service(service: ConversionService | None, config: AppConfig | None) -> ConversionService:
    if service is not None:
        return service
    return ConversionService(config or load_config())


def _pdf_config(service: ConversionService, overrides: ConfigOverrides) -> PdfConfig:
    if isinstance(overrides, PdfConfig):
        return overrides
    return service.config.pdf.merged(overrides)


def convert_images_to_pdf(
    sources: Iterable[ImageSource | Path | str],
    config: ConfigOverrides = None,
    filename: str | None = None,
    on_progress: ProgressCallback | None = None,
    *,
    confirm: ConfirmCallback | None = None,
    cancellation: Event | None = None,
    service: ConversionService | None = None,
    app_config: AppConfig | None = None,
) -> ConversionResult:
    """Filter, sort and convert *sources*; the PDF is returned in memory.

    The bytes are available as ``result.pdf_bytes``.
    """
    svc = _service(service, app_config)
    return svc.convert(
        sources_from_paths(sources),
        pdf_config=_pdf_config(svc, config),
        filename=filename,
        progress=on_progress,
        confirm=confirm,
        cancellation=cancellation,
        sink=select_sink("library"),
    )


def convert_public_images_to_pdf(
    paths: Sequence[str],
    config: ConfigOverrides = None,
    filename: str | None = None,
    on_progress: ProgressCallback | None = None,
    *,
    base_url: str | None = None,
    session: requests.Session | None = None,
    confirm: ConfirmCallback | None = None,
    service: ConversionService | None = None,
    app_config: AppConfig | None = None,
) -> tuple[ConversionResult, list[FetchFailure]]:
    """Fetch every path to bytes first, then convert what could be loaded."""
    svc = _service(service, app_config)
    runtime = svc.config.runtime
    sources, failures = fetch_sources(
        paths,
        public_dir=runtime.public_dir,
        base_url=base_url,
        timeout=runtime.fetch_timeout_s,
        session=session,
    )
    if not sources:
        raise InputError("No images could be loaded")
    result = convert_images_to_pdf(
        sources,
        config,
        filename,
        on_progress,
        confirm=confirm,
        service=svc,
    )
    return result, failures


def convert_folder(
    folder: Path,
    output: Path,
    config: ConfigOverrides = None,
    on_progress: ProgressCallback | None = None,
    *,
    confirm: ConfirmCallback | None = None,
    service: ConversionService | None = None,
    app_config: AppConfig | None = None,
) -> ConversionResult:
    """Script mode: convert the images found directly inside *folder* into *output*."""
    folder = Path(folder)
    output = Path(output)
    if not folder.is_dir():
        raise InputError(f"Folder not found: {folder}")
    svc = _service(service, app_config)
    return svc.convert(
        list_folder(folder),
        pdf_config=_pdf_config(svc, config),
        filename=output.name,
        progress=on_progress,
        confirm=confirm,
        sink=FileSink(output.parent),
    )


__all__ = [
    "convert_images_to_pdf",
    "convert_public_images_to_pdf",
    "convert_folder",
]
