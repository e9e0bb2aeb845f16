from __future__ import annotations

import csv
import json
import threading
from io import BytesIO
from pathlib import Path

import pytest
from pypdf import PdfReader
from reportlab.pdfgen.canvas import Canvas

from pdf_converter.config import PdfConfig
from pdf_converter.core import ConversionService
from pdf_converter.errors import CancelledByUser, InputError, NoImagesProcessed, SinkError
from pdf_converter.library import convert_folder, convert_images_to_pdf
from pdf_converter.models import BatchState, ConversionProgress
from pdf_converter.sinks import DeliveryResult, FileSink
from pdf_converter.sources import ImageSource, list_folder


def _page_texts(data: bytes) -> list[str]:
    return [page.extract_text() for page in PdfReader(BytesIO(data)).pages]


def test_folder_is_filtered_sorted_and_captioned(tmp_path: Path, service: ConversionService, make_image) -> None:
    folder = tmp_path / "input"
    make_image(folder, "b.png")
    make_image(folder, "a.jpg")
    (folder / "c.txt").write_text("not an image", encoding="utf-8")
    output = tmp_path / "album.pdf"

    result = convert_folder(folder, output, service=service)

    assert result.state is BatchState.COMPLETED
    assert result.output_path == output
    assert result.captions == ["a.jpg", "b.png"]
    assert result.filtered_out == 1
    texts = _page_texts(output.read_bytes())
    assert len(texts) == 2
    assert "a.jpg" in texts[0] and "1 / 2" in texts[0]
    assert "b.png" in texts[1] and "2 / 2" in texts[1]


def test_corrupt_image_is_skipped_and_progress_reaches_completion(service: ConversionService, png_bytes) -> None:
    sources = [ImageSource.from_bytes(f"img{index}.png", png_bytes()) for index in range(3)]
    sources.append(ImageSource.from_bytes("bad.png", b"garbage"))
    events: list[ConversionProgress] = []

    result = service.convert(sources, progress=events.append)

    assert result.page_count == 3
    assert result.summary.failures == 1
    assert result.warnings == ["DECODE: bad.png"]
    assert len(events) == 4
    assert [event.current for event in events] == [1, 2, 3, 4]
    assert events[-1].percentage == 100
    failed = [event for event in events if not event.ok]
    assert [event.current_label for event in failed] == ["Error: bad.png"]
    assert len(_page_texts(result.pdf_bytes or b"")) == 3


def test_no_supported_images_fails_without_output(tmp_path: Path, service: ConversionService) -> None:
    folder = tmp_path / "input"
    folder.mkdir()
    (folder / "notes.txt").write_text("x", encoding="utf-8")
    output = tmp_path / "out.pdf"
    with pytest.raises(NoImagesProcessed) as excinfo:
        convert_folder(folder, output, service=service)
    assert excinfo.value.code == "NO_IMAGES"
    assert not output.exists()


def test_all_images_failing_fails_without_output(tmp_path: Path, service: ConversionService) -> None:
    sources = [ImageSource.from_bytes("x.png", b"broken"), ImageSource.from_bytes("y.jpg", b"broken")]
    with pytest.raises(NoImagesProcessed):
        service.convert(sources, sink=FileSink(tmp_path))
    assert not (tmp_path / "images.pdf").exists()


def test_empty_selection_and_missing_folder_are_input_errors(tmp_path: Path, service: ConversionService) -> None:
    with pytest.raises(InputError):
        service.convert([])
    with pytest.raises(InputError):
        convert_folder(tmp_path / "nope", tmp_path / "out.pdf", service=service)


def test_large_batch_requires_confirmation(service: ConversionService, png_bytes) -> None:
    service.config.runtime.large_batch_threshold = 2
    sources = [ImageSource.from_bytes(f"{index}.png", png_bytes()) for index in range(3)]
    asked: list[int] = []

    with pytest.raises(CancelledByUser):
        service.convert(sources)
    with pytest.raises(CancelledByUser):
        service.convert(sources, confirm=lambda total: asked.append(total) or False)

    result = service.convert(sources, confirm=lambda total: True)
    assert asked == [3]
    assert result.page_count == 3


def test_input_order_does_not_change_output(service: ConversionService, png_bytes) -> None:
    sources = [ImageSource.from_bytes(name, png_bytes()) for name in ["c.png", "a.png", "b.png"]]
    first = service.convert(sources)
    second = service.convert(list(reversed(sources)))
    assert first.captions == second.captions == ["a.png", "b.png", "c.png"]
    assert _page_texts(first.pdf_bytes or b"") == _page_texts(second.pdf_bytes or b"")


def test_cancellation_keeps_pages_already_drawn(service: ConversionService, png_bytes) -> None:
    sources = [ImageSource.from_bytes(f"{index}.png", png_bytes()) for index in range(4)]
    cancel = threading.Event()

    result = service.convert(sources, progress=lambda _event: cancel.set(), cancellation=cancel)

    assert result.state is BatchState.CANCELLED
    assert result.page_count == 1
    assert result.summary.state == "cancelled"


def test_cancellation_before_first_page(service: ConversionService, png_bytes) -> None:
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(CancelledByUser):
        service.convert([ImageSource.from_bytes("a.png", png_bytes())], cancellation=cancel)


def test_pacing_sleeps_at_yield_points(service: ConversionService, sleeps, png_bytes) -> None:
    sources = [ImageSource.from_bytes(f"{index:02d}.png", png_bytes((8, 8))) for index in range(12)]
    service.convert(sources)
    assert sleeps.calls == [pytest.approx(0.02)]


def test_pdf_options_apply_to_pages(service: ConversionService, png_bytes) -> None:
    options = PdfConfig(orientation="landscape", page_size="letter", quality=1.0)
    result = service.convert([ImageSource.from_bytes("a.png", png_bytes())], pdf_config=options)
    page = PdfReader(BytesIO(result.pdf_bytes or b"")).pages[0]
    assert float(page.mediabox.width) == pytest.approx(792, abs=0.5)
    assert float(page.mediabox.height) == pytest.approx(612, abs=0.5)


def test_run_log_and_summary(tmp_path: Path, service: ConversionService, png_bytes) -> None:
    sources = [
        ImageSource.from_bytes("ok.png", png_bytes()),
        ImageSource.from_bytes("bad.png", b"broken"),
        ImageSource.from_bytes("notes.txt", b"text"),
    ]
    result = service.convert(sources, run_id="run-test")

    assert result.log_file is not None
    entries = [json.loads(line) for line in result.log_file.read_text(encoding="utf-8").splitlines()]
    by_source = {entry["source"]: entry for entry in entries}
    assert by_source["notes.txt"]["status"] == "skipped"
    assert by_source["notes.txt"]["error_code"] == "UNSUPPORTED_FORMAT"
    assert by_source["bad.png"]["status"] == "failure"
    assert by_source["bad.png"]["error_code"] == "DECODE"
    assert by_source["ok.png"]["status"] == "success"
    assert by_source["ok.png"]["page"] == 1

    summary_path = tmp_path / "runs" / "summary.csv"
    with summary_path.open(encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert rows[-1]["run_id"] == "run-test"
    assert rows[-1]["successes"] == "1"
    assert rows[-1]["failures"] == "1"
    assert rows[-1]["filtered_out"] == "1"
    assert rows[-1]["state"] == "completed"


class ExplodingSink:
    def deliver(self, blob: bytes, filename: str) -> DeliveryResult:
        raise RuntimeError("disk on fire")


def test_sink_failures_are_fatal(service: ConversionService, png_bytes) -> None:
    with pytest.raises(SinkError):
        service.convert([ImageSource.from_bytes("a.png", png_bytes())], sink=ExplodingSink())


def test_library_entry_point_returns_bytes(tmp_path: Path, config, make_image) -> None:
    make_image(tmp_path / "in", "a.png")
    result = convert_images_to_pdf(list_folder(tmp_path / "in"), {"margin": 10}, app_config=config)
    assert (result.pdf_bytes or b"").startswith(b"%PDF")
    assert result.delivery.filename == "images.pdf"


def test_oversized_image_is_skipped_and_batch_continues(config, sleeps, png_bytes) -> None:
    config.runtime.max_file_size_mb = 1
    service = ConversionService(config, sleep=sleeps)
    payload = png_bytes()
    huge = ImageSource(display_name="b.png", loader=lambda: payload, size_hint=2 * 1024 * 1024)
    sources = [ImageSource.from_bytes("a.png", payload), huge, ImageSource.from_bytes("c.png", payload)]
    events: list[ConversionProgress] = []

    result = service.convert(sources, progress=events.append)

    assert result.state is BatchState.COMPLETED
    assert result.captions == ["a.png", "c.png"]
    assert result.warnings == ["SIZE_LIMIT: b.png"]
    assert result.summary.warnings == {"SIZE_LIMIT": 1}
    assert [event.current_label for event in events] == ["a.png", "Error: b.png", "c.png"]
    assert events[-1].percentage == 100


def test_draw_failure_skips_only_that_image(monkeypatch, service: ConversionService, png_bytes) -> None:
    original = Canvas.drawImage
    calls: list[int] = []

    def flaky_draw(self, *args, **kwargs):
        calls.append(1)
        if len(calls) == 2:
            raise ValueError("image stream rejected")
        return original(self, *args, **kwargs)

    monkeypatch.setattr(Canvas, "drawImage", flaky_draw)
    sources = [ImageSource.from_bytes(name, png_bytes()) for name in ["a.png", "b.png", "c.png"]]
    events: list[ConversionProgress] = []

    result = service.convert(sources, progress=events.append)

    assert result.captions == ["a.png", "c.png"]
    assert result.warnings == ["DRAW: b.png"]
    assert len(events) == 3
    assert events[1].current_label == "Error: b.png"
    texts = _page_texts(result.pdf_bytes or b"")
    assert len(texts) == 2
    assert "b.png" not in "".join(texts)
    assert "c.png" in texts[1] and "3 / 3" in texts[1]
