from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from ..config import AppConfig, load_config
from ..core import ConversionService
from ..jobs import JobManager
from ..settings import Settings, get_settings
from .routers import convert, health, jobs


def create_app(
    config_path: Path | None = None,
    *,
    config: AppConfig | None = None,
    require_enabled: bool = True,
) -> FastAPI:
    config = config or _prepare_config(get_settings(), config_path)
    if require_enabled and not config.runtime.enable_local_api:
        raise RuntimeError("Local API is disabled. Enable it via configuration or environment.")

    service = ConversionService(config)
    manager = JobManager(config, service)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        manager.shutdown()

    app = FastAPI(title="Image to PDF Converter", version="0.1.0", lifespan=lifespan)
    app.state.config = config
    app.state.service = service
    app.state.job_manager = manager

    app.include_router(health.router)
    app.include_router(convert.router)
    app.include_router(jobs.router)
    return app


def _prepare_config(settings: Settings, config_path: Path | None) -> AppConfig:
    return settings.apply(load_config(config_path or settings.config_path))


__all__ = ["create_app"]
