"""Image sources and the canonical page ordering."""

from __future__ import annotations

import locale
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Sequence
from urllib.parse import urljoin, urlparse

import requests

from .detection import mime_for

Loader = Callable[[], bytes]


@dataclass(slots=True)
class ImageSource:
    """A named, lazily loaded image.

    ``display_name`` is both the sort key and the caption printed on the page.
    """

    display_name: str
    loader: Loader = field(repr=False)
    declared_mime_type: str = ""
    size_hint: int | None = None
    origin: str = ""

    def read(self) -> bytes:
        return self.loader()

    @classmethod
    def from_path(cls, path: Path, display_name: str | None = None) -> "ImageSource":
        path = Path(path)
        name = display_name or path.name
        try:
            size = path.stat().st_size
        except OSError:
            size = None
        return cls(
            display_name=name,
            loader=path.read_bytes,
            declared_mime_type=mime_for(name),
            size_hint=size,
            origin=str(path),
        )

    @classmethod
    def from_bytes(cls, display_name: str, payload: bytes, mime_type: str | None = None) -> "ImageSource":
        return cls(
            display_name=display_name,
            loader=lambda: payload,
            declared_mime_type=mime_type or mime_for(display_name),
            size_hint=len(payload),
            origin=display_name,
        )


@dataclass(slots=True)
class FetchFailure:
    path: str
    reason: str


def sort_key(source: ImageSource) -> tuple[str, str]:
    return (locale.strxfrm(source.display_name.casefold()), source.display_name)


def sort_sources(sources: Iterable[ImageSource]) -> list[ImageSource]:
    """Order sources by display name, independent of enumeration order."""
    return sorted(sources, key=sort_key)


def list_folder(folder: Path) -> list[ImageSource]:
    """Flat listing of the regular files in *folder*; subdirectories are ignored."""
    return [ImageSource.from_path(entry) for entry in Path(folder).iterdir() if entry.is_file()]


def sources_from_paths(paths: Iterable[Path | str | ImageSource]) -> list[ImageSource]:
    sources: list[ImageSource] = []
    for item in paths:
        if isinstance(item, ImageSource):
            sources.append(item)
        else:
            sources.append(ImageSource.from_path(Path(item)))
    return sources


def is_remote(value: str) -> bool:
    return urlparse(value).scheme in {"http", "https"}


def _inside(root: Path, relative: str) -> Path | None:
    base = Path(root).resolve()
    candidate = (base / relative.lstrip("/")).resolve()
    return candidate if candidate.is_relative_to(base) else None


def _display_name(path: str) -> str:
    segment = urlparse(path).path.rstrip("/").split("/")[-1]
    return segment or "image"


def fetch_sources(
    paths: Sequence[str],
    *,
    public_dir: Path = Path("public"),
    base_url: str | None = None,
    timeout: float = 30.0,
    session: requests.Session | None = None,
) -> tuple[list[ImageSource], list[FetchFailure]]:
    """Fetch every path to bytes up front.

    URLs (or paths resolved against *base_url*) are downloaded with
    ``requests``; anything else is read from *public_dir*. Failures are
    returned alongside the loaded sources instead of being raised.
    """
    http = session or requests.Session()
    sources: list[ImageSource] = []
    failures: list[FetchFailure] = []
    try:
        for path in paths:
            name = _display_name(path)
            target = urljoin(base_url, path) if base_url and not is_remote(path) else path
            try:
                if is_remote(target):
                    response = http.get(target, timeout=timeout)
                    response.raise_for_status()
                    payload = response.content
                    mime = response.headers.get("Content-Type", "").split(";", 1)[0].strip()
                else:
                    local = _inside(public_dir, path)
                    if local is None:
                        failures.append(FetchFailure(path=path, reason="outside the public directory"))
                        continue
                    payload = local.read_bytes()
                    mime = ""
            except (requests.RequestException, OSError) as exc:
                failures.append(FetchFailure(path=path, reason=str(exc)))
                continue
            source = ImageSource.from_bytes(name, payload, mime or None)
            source.origin = target
            sources.append(source)
    finally:
        if session is None:
            http.close()
    return sources, failures


__all__ = [
    "ImageSource",
    "FetchFailure",
    "sort_key",
    "sort_sources",
    "list_folder",
    "sources_from_paths",
    "fetch_sources",
    "is_remote",
]
