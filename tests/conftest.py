from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Callable

import pytest
from PIL import Image

from pdf_converter.config import AppConfig, RuntimeConfig
from pdf_converter.core import ConversionService


def write_image(
    folder: Path,
    name: str,
    size: tuple[int, int] = (40, 30),
    color: tuple[int, ...] = (200, 30, 30),
    mode: str = "RGB",
) -> Path:
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / name
    with Image.new(mode, size, color) as image:
        image.save(path)
    return path


def encode_image(size: tuple[int, int] = (40, 30), fmt: str = "PNG", mode: str = "RGB") -> bytes:
    buffer = BytesIO()
    color = (20, 120, 220, 128) if mode == "RGBA" else (20, 120, 220)
    with Image.new(mode, size, color) as image:
        image.save(buffer, fmt)
    return buffer.getvalue()


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def build_config(output_dir: Path) -> AppConfig:
    runtime = RuntimeConfig()
    runtime.output_dir = output_dir
    runtime.log_file = "log.jsonl"
    runtime.summary_csv = "summary.csv"
    return AppConfig(runtime=runtime)


@pytest.fixture
def make_image() -> Callable[..., Path]:
    return write_image


@pytest.fixture
def png_bytes() -> Callable[..., bytes]:
    return encode_image


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return build_config(tmp_path / "runs")


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def service(config: AppConfig, sleeps: SleepRecorder) -> ConversionService:
    return ConversionService(config, sleep=sleeps)
