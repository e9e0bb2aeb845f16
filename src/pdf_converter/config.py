from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Iterable, Literal, Mapping


CONFIG_FILE = Path("config.toml")

Orientation = Literal["portrait", "landscape"]
PageSize = Literal["a4", "letter", "legal"]

ORIENTATIONS: tuple[str, ...] = ("portrait", "landscape")
PAGE_SIZES: tuple[str, ...] = ("a4", "letter", "legal")

MIN_QUALITY = 0.1
MAX_QUALITY = 1.0


@dataclass(frozen=True, slots=True)
class PdfConfig:
    """Layout and encoding options for a single conversion run."""

    margin: float = 20.0
    font_size: float = 10.0
    quality: float = 0.8
    orientation: Orientation = "portrait"
    page_size: PageSize = "a4"

    @property
    def clamped_quality(self) -> float:
        return max(MIN_QUALITY, min(MAX_QUALITY, float(self.quality)))

    def merged(self, overrides: Mapping[str, object] | None) -> "PdfConfig":
        """Return a copy with the non-empty entries of *overrides* applied.

        Unknown keys are ignored so partial payloads from forms or TOML files
        can be passed through unchanged.
        """
        if not overrides:
            return self
        known = {item.name for item in fields(self)}
        changes: dict[str, object] = {}
        for key, value in overrides.items():
            if key not in known or value is None:
                continue
            if key in {"margin", "font_size", "quality"}:
                changes[key] = float(value)  # type: ignore[arg-type]
            elif key == "orientation":
                changes[key] = _choice(str(value), ORIENTATIONS, key)
            elif key == "page_size":
                changes[key] = _choice(str(value), PAGE_SIZES, key)
        return replace(self, **changes)  # type: ignore[arg-type]

    def as_dict(self) -> dict[str, object]:
        return {
            "margin": self.margin,
            "font_size": self.font_size,
            "quality": self.quality,
            "orientation": self.orientation,
            "page_size": self.page_size,
        }


@dataclass(slots=True)
class PacingConfig:
    enabled: bool = True
    large_total: int = 100
    huge_total: int = 500
    yield_every_small: int = 10
    yield_every_large: int = 5
    short_pause_s: float = 0.02
    long_pause_min_s: float = 0.1
    long_pause_max_s: float = 0.5
    collect_garbage: bool = True


@dataclass(slots=True)
class JobsConfig:
    worker_pool_size: int = 1
    keep_partials: bool = True


@dataclass(slots=True)
class RuntimeConfig:
    output_dir: Path = Path("runs")
    log_file: str = "log.jsonl"
    summary_csv: str = "summary.csv"
    max_file_size_mb: int = 50
    large_batch_threshold: int = 1000
    public_dir: Path = Path("public")
    fetch_timeout_s: float = 30.0
    allow_remote_fetch: bool = False
    enable_local_api: bool = False
    pacing: PacingConfig = field(default_factory=PacingConfig)
    jobs: JobsConfig = field(default_factory=JobsConfig)


@dataclass(slots=True)
class APIConfig:
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass(slots=True)
class AppConfig:
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    pdf: PdfConfig = field(default_factory=PdfConfig)
    formats: tuple[str, ...] = (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".svg")
    api: APIConfig = field(default_factory=APIConfig)

    @property
    def allowed_extensions(self) -> tuple[str, ...]:
        return self.formats


def _choice(value: str, allowed: tuple[str, ...], name: str) -> str:
    normalized = value.strip().lower()
    if normalized not in allowed:
        raise ValueError(f"Unsupported {name}: {value!r} (expected one of {', '.join(allowed)})")
    return normalized


def _read_toml(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _build_pacing(data: Mapping[str, object] | None) -> PacingConfig:
    if not data:
        return PacingConfig()
    defaults = PacingConfig()
    return PacingConfig(
        enabled=bool(data.get("enabled", defaults.enabled)),
        large_total=int(data.get("large_total", defaults.large_total)),
        huge_total=int(data.get("huge_total", defaults.huge_total)),
        yield_every_small=int(data.get("yield_every_small", defaults.yield_every_small)),
        yield_every_large=int(data.get("yield_every_large", defaults.yield_every_large)),
        short_pause_s=float(data.get("short_pause_s", defaults.short_pause_s)),
        long_pause_min_s=float(data.get("long_pause_min_s", defaults.long_pause_min_s)),
        long_pause_max_s=float(data.get("long_pause_max_s", defaults.long_pause_max_s)),
        collect_garbage=bool(data.get("collect_garbage", defaults.collect_garbage)),
    )


def _build_jobs(data: Mapping[str, object] | None) -> JobsConfig:
    if not data:
        return JobsConfig()
    return JobsConfig(
        worker_pool_size=int(data.get("worker_pool_size", 1)),
        keep_partials=bool(data.get("keep_partials", True)),
    )


def _build_runtime(data: Mapping[str, object] | None) -> RuntimeConfig:
    if not data:
        return RuntimeConfig()
    pacing = _build_pacing(data.get("pacing") if isinstance(data.get("pacing"), Mapping) else None)
    jobs = _build_jobs(data.get("jobs") if isinstance(data.get("jobs"), Mapping) else None)
    return RuntimeConfig(
        output_dir=Path(str(data.get("output_dir", "runs"))),
        log_file=str(data.get("log_file", "log.jsonl")),
        summary_csv=str(data.get("summary_csv", "summary.csv")),
        max_file_size_mb=int(data.get("max_file_size_mb", 50)),
        large_batch_threshold=int(data.get("large_batch_threshold", 1000)),
        public_dir=Path(str(data.get("public_dir", "public"))),
        fetch_timeout_s=float(data.get("fetch_timeout_s", 30.0)),
        allow_remote_fetch=bool(data.get("allow_remote_fetch", False)),
        enable_local_api=bool(data.get("enable_local_api", False)),
        pacing=pacing,
        jobs=jobs,
    )


def _build_api(data: Mapping[str, object] | None) -> APIConfig:
    if not data:
        return APIConfig()
    return APIConfig(host=str(data.get("host", "127.0.0.1")), port=int(data.get("port", 8000)))


def _tuple_of_extensions(value: object | None, default: Iterable[str]) -> tuple[str, ...]:
    if not value:
        return tuple(default)
    if isinstance(value, str):
        value = (value,)
    if isinstance(value, Iterable):
        normalized = []
        for item in value:
            text = str(item).strip().lower()
            normalized.append(text if text.startswith(".") else f".{text}")
        return tuple(normalized)
    raise TypeError(f"Unsupported formats configuration: {value!r}")


def load_config(path: Path | None = None) -> AppConfig:
    path = path or CONFIG_FILE
    raw = _read_toml(path)
    runtime_data = raw.get("runtime") if isinstance(raw, Mapping) else None
    pdf_data = raw.get("pdf") if isinstance(raw, Mapping) else None
    formats_data = raw.get("formats") if isinstance(raw, Mapping) else None
    api_data = raw.get("api") if isinstance(raw, Mapping) else None
    runtime = _build_runtime(runtime_data if isinstance(runtime_data, Mapping) else None)
    pdf = PdfConfig().merged(pdf_data if isinstance(pdf_data, Mapping) else None)
    formats = _tuple_of_extensions(formats_data, AppConfig().formats)
    api = _build_api(api_data if isinstance(api_data, Mapping) else None)
    return AppConfig(runtime=runtime, pdf=pdf, formats=formats, api=api)


def dump_config(config: AppConfig) -> str:
    pacing = config.runtime.pacing
    payload = {
        "runtime": {
            "output_dir": str(config.runtime.output_dir),
            "log_file": config.runtime.log_file,
            "summary_csv": config.runtime.summary_csv,
            "max_file_size_mb": config.runtime.max_file_size_mb,
            "large_batch_threshold": config.runtime.large_batch_threshold,
            "public_dir": str(config.runtime.public_dir),
            "fetch_timeout_s": config.runtime.fetch_timeout_s,
            "allow_remote_fetch": config.runtime.allow_remote_fetch,
            "enable_local_api": config.runtime.enable_local_api,
            "pacing": {
                "enabled": pacing.enabled,
                "large_total": pacing.large_total,
                "huge_total": pacing.huge_total,
                "yield_every_small": pacing.yield_every_small,
                "yield_every_large": pacing.yield_every_large,
                "short_pause_s": pacing.short_pause_s,
                "long_pause_min_s": pacing.long_pause_min_s,
                "long_pause_max_s": pacing.long_pause_max_s,
                "collect_garbage": pacing.collect_garbage,
            },
            "jobs": {
                "worker_pool_size": config.runtime.jobs.worker_pool_size,
                "keep_partials": config.runtime.jobs.keep_partials,
            },
        },
        "pdf": config.pdf.as_dict(),
        "formats": list(config.allowed_extensions),
        "api": {
            "host": config.api.host,
            "port": config.api.port,
        },
    }
    return json.dumps(payload, indent=2)
