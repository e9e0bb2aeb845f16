from pathlib import Path

from typer.testing import CliRunner

from pdf_converter.cli import app

runner = CliRunner()


def _write_config(tmp_path: Path) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(f'[runtime]\noutput_dir = "{(tmp_path / "runs").as_posix()}"\n', encoding="utf-8")
    return path


def test_convert_folder_writes_pdf(tmp_path: Path, make_image) -> None:
    folder = tmp_path / "public"
    make_image(folder, "b.png")
    make_image(folder, "a.jpg")
    output = tmp_path / "collection.pdf"
    result = runner.invoke(
        app,
        ["convert", str(folder), str(output), "--config", str(_write_config(tmp_path)), "--page-size", "letter"],
    )
    assert result.exit_code == 0, result.output
    assert output.read_bytes().startswith(b"%PDF")
    assert "a.jpg" in result.output
    assert "Conversion completed" in result.output


def test_missing_folder_exits_with_error(tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["convert", str(tmp_path / "absent"), str(tmp_path / "out.pdf"), "--config", str(_write_config(tmp_path))]
    )
    assert result.exit_code == 1
    assert "INPUT" in result.output


def test_folder_without_images_lists_supported_formats(tmp_path: Path) -> None:
    folder = tmp_path / "docs"
    folder.mkdir()
    (folder / "notes.txt").write_text("x", encoding="utf-8")
    result = runner.invoke(
        app, ["convert", str(folder), str(tmp_path / "out.pdf"), "--config", str(_write_config(tmp_path))]
    )
    assert result.exit_code == 1
    assert "Supported formats" in result.output
    assert not (tmp_path / "out.pdf").exists()


def test_formats_command() -> None:
    result = runner.invoke(app, ["formats"])
    assert result.exit_code == 0
    assert ".webp" in result.output
