from pathlib import Path

from pdf_converter.config import AppConfig, RuntimeConfig
from pdf_converter.utils import atomic_write_bytes, ensure_run_paths, generate_run_id, pdf_filename, slugify


def test_slugify_basic() -> None:
    assert slugify("Holiday Photos 2024.pdf") == "Holiday-Photos-2024.pdf"
    assert slugify("../../etc/passwd") == "etc-passwd"
    assert slugify("???") == "file"


def test_pdf_filename_appends_extension_and_strips_directories() -> None:
    assert pdf_filename("album") == "album.pdf"
    assert pdf_filename("nested/dir/Album.PDF") == "Album.PDF"
    assert pdf_filename(None) == "images.pdf"
    assert pdf_filename("") == "images.pdf"


def test_generate_run_id_unique() -> None:
    first = generate_run_id()
    second = generate_run_id()
    assert first != second
    assert first.startswith("run-")
    assert generate_run_id("job").startswith("job-")


def test_ensure_run_paths_creates_directory(tmp_path: Path) -> None:
    config = AppConfig(runtime=RuntimeConfig(output_dir=tmp_path))
    paths = ensure_run_paths(config, "run-1")
    assert paths.base_dir.is_dir()
    assert paths.log_file == tmp_path / "run-1" / "log.jsonl"


def test_atomic_write_bytes_replaces_content(tmp_path: Path) -> None:
    target = tmp_path / "out" / "doc.pdf"
    atomic_write_bytes(target, b"first")
    atomic_write_bytes(target, b"second")
    assert target.read_bytes() == b"second"
    assert [path.name for path in target.parent.iterdir()] == ["doc.pdf"]
