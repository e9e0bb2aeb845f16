from __future__ import annotations

import gc
import time
from dataclasses import dataclass, field
from threading import Event
from typing import Callable, Iterable

from .config import AppConfig, PdfConfig
from .detection import filter_sources
from .document import PdfDocument
from .errors import CancelledByUser, ConversionError, InputError, ItemError, NoImagesProcessed, SinkError
from .layout import CAPTION_BAND_MM, compute_layout, page_dimensions
from .logging import BatchSummary, RunLogEntry, RunLogger, StageTimings, append_summary_row
from .models import BatchState, ConversionProgress, ConversionResult
from .pacing import PacingPolicy
from .preparer import ImagePreparer
from .sinks import DeliveryResult, MemorySink, Sink
from .sources import ImageSource, sort_sources
from .utils import RunPaths, ensure_run_paths, generate_run_id

ProgressCallback = Callable[[ConversionProgress], None]
ConfirmCallback = Callable[[int], bool]
Sleeper = Callable[[float], None]

DEFAULT_FILENAME = "images.pdf"


@dataclass(slots=True)
class _ConversionContext:
    run_id: str
    run_paths: RunPaths
    logger: RunLogger
    pdf: PdfConfig
    callback: ProgressCallback
    cancellation: Event | None
    pacing: PacingPolicy
    total: int
    summary: BatchSummary
    warnings: list[str] = field(default_factory=list)


class ConversionService:
    """Converts an ordered batch of images into one PDF, one image per page."""

    def __init__(
        self,
        config: AppConfig,
        *,
        preparer: ImagePreparer | None = None,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self._config = config
        self._preparer = preparer or ImagePreparer(config.runtime.max_file_size_mb * 1024 * 1024)
        self._sleep = sleep

    @property
    def config(self) -> AppConfig:
        return self._config

    def convert(
        self,
        sources: Iterable[ImageSource],
        *,
        pdf_config: PdfConfig | None = None,
        filename: str | None = None,
        progress: ProgressCallback | None = None,
        confirm: ConfirmCallback | None = None,
        cancellation: Event | None = None,
        sink: Sink | None = None,
        run_id: str | None = None,
    ) -> ConversionResult:
        pdf = pdf_config or self._config.pdf
        callback = progress or (lambda _: None)
        candidates = list(sources)
        if not candidates:
            raise InputError("No images were selected")
        filtered = filter_sources(candidates, self._config.allowed_extensions)
        ordered = sort_sources(filtered.accepted)
        if not ordered:
            raise NoImagesProcessed(
                f"No supported image files found ({len(filtered.rejected)} file(s) filtered out)"
            )
        self._confirm_large_batch(len(ordered), confirm)

        run_id = run_id or generate_run_id()
        run_paths = ensure_run_paths(self._config, run_id)
        summary = BatchSummary(total=len(ordered), filtered_out=len(filtered.rejected))
        context = _ConversionContext(
            run_id=run_id,
            run_paths=run_paths,
            logger=RunLogger(run_paths.log_file),
            pdf=pdf,
            callback=callback,
            cancellation=cancellation,
            pacing=PacingPolicy.for_total(len(ordered), self._config.runtime.pacing),
            total=len(ordered),
            summary=summary,
        )
        for rejected in filtered.rejected:
            self._log_item(context, rejected, "skipped", error_code="UNSUPPORTED_FORMAT")

        name = filename or DEFAULT_FILENAME
        page_width, page_height = page_dimensions(pdf.page_size, pdf.orientation)
        document = PdfDocument(page_width, page_height, margin=pdf.margin, title=name)

        summary.state = BatchState.RUNNING.value
        try:
            state = self._run(document, ordered, context)
            summary.state = state.value
            if document.page_count == 0:
                if state is BatchState.CANCELLED:
                    raise CancelledByUser("Conversion cancelled before any image was converted")
                raise NoImagesProcessed(f"None of the {len(ordered)} image(s) could be converted")
            delivery = self._deliver(document, sink or MemorySink(), name)
        finally:
            self._write_batch_summary(run_id, summary)

        return ConversionResult(
            run_id=run_id,
            state=state,
            delivery=delivery,
            summary=summary,
            captions=document.captions,
            warnings=context.warnings,
            log_file=run_paths.log_file,
        )

    def _run(self, document: PdfDocument, ordered: list[ImageSource], context: _ConversionContext) -> BatchState:
        for index, source in enumerate(ordered, start=1):
            if self._is_cancelled(context):
                return BatchState.CANCELLED
            self._process_item(document, source, index, context)
            self._pace(index, context)
        return BatchState.COMPLETED

    def _process_item(
        self, document: PdfDocument, source: ImageSource, index: int, context: _ConversionContext
    ) -> None:
        timings = StageTimings()
        pdf = context.pdf
        try:
            started = time.perf_counter()
            prepared = self._preparer.prepare(source, pdf.clamped_quality)
            timings.prepare_ms = (time.perf_counter() - started) * 1000

            started = time.perf_counter()
            rect = compute_layout(
                prepared.width,
                prepared.height,
                document.page_width,
                document.page_height,
                pdf.margin,
                CAPTION_BAND_MM,
            )
            timings.layout_ms = (time.perf_counter() - started) * 1000

            started = time.perf_counter()
            staged = document.stage_page(
                prepared,
                rect,
                caption=source.display_name,
                footer=f"{index} / {context.total}",
                font_size=pdf.font_size,
            )
            page = document.commit(staged)
            del staged, prepared
            timings.draw_ms = (time.perf_counter() - started) * 1000
        except ItemError as exc:
            context.summary.failures += 1
            context.summary.count_warning(exc.code)
            context.warnings.append(f"{exc.code}: {source.display_name}")
            self._log_item(context, source, "failure", error_code=exc.code, timings=timings, message=str(exc))
            context.callback(ConversionProgress.after(index, context.total, source.display_name, ok=False))
            return

        context.summary.successes += 1
        self._log_item(context, source, "success", timings=timings, page=page)
        context.callback(ConversionProgress.after(index, context.total, source.display_name))

    def _pace(self, index: int, context: _ConversionContext) -> None:
        pause = context.pacing(index, context.total)
        if pause <= 0:
            return
        if context.pacing.is_batch_boundary(index, context.total) and context.pacing.collect_garbage:
            gc.collect()
        self._sleep(pause)

    def _is_cancelled(self, context: _ConversionContext) -> bool:
        return context.cancellation is not None and context.cancellation.is_set()

    def _confirm_large_batch(self, total: int, confirm: ConfirmCallback | None) -> None:
        threshold = self._config.runtime.large_batch_threshold
        if total <= threshold:
            return
        if confirm is None or not confirm(total):
            raise CancelledByUser(f"Conversion of {total} images was not confirmed")

    def _deliver(self, document: PdfDocument, sink: Sink, filename: str) -> DeliveryResult:
        blob = document.finalize()
        try:
            return sink.deliver(blob, filename)
        except ConversionError:
            raise
        except Exception as exc:
            raise SinkError(f"Cannot deliver {filename}: {exc}") from exc

    def _log_item(
        self,
        context: _ConversionContext,
        source: ImageSource,
        status: str,
        *,
        error_code: str | None = None,
        timings: StageTimings | None = None,
        page: int | None = None,
        message: str | None = None,
    ) -> None:
        context.logger.append(
            RunLogEntry(
                run_id=context.run_id,
                source=source.origin or source.display_name,
                status=status,
                mime_type=source.declared_mime_type or "unknown",
                warnings=[message] if message else [],
                error_code=error_code,
                timings=timings or StageTimings(),
                page=page,
                size_bytes=source.size_hint or 0,
            )
        )

    def _write_batch_summary(self, run_id: str, summary: BatchSummary) -> None:
        summary_path = self._config.runtime.output_dir / self._config.runtime.summary_csv
        append_summary_row(summary_path, run_id, summary)


__all__ = [
    "ConversionService",
    "ConversionProgress",
    "ConversionResult",
    "ProgressCallback",
    "ConfirmCallback",
]
