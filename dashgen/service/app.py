"""FastAPI application entrypoint for dashgen service mode."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import load_config
from ..errors import ConfigurationError, DashgenError
from ..generator import GenerationReport, Generator
from ..loader import load_dashboard


class GenerateRequest(BaseModel):
    """Unset build fields fall back to the script's .dashgen.yml, then the dashboard."""

    script: str
    incremental: Optional[bool] = None
    preview: Optional[List[str]] = None
    render: Optional[bool] = None
    workers: Optional[int] = None
    output_dir: Optional[str] = None


class UnitErrorModel(BaseModel):
    message: str
    type: str
    item: Optional[str] = None
    path: List[str] = []


class GenerateResponse(BaseModel):
    status: str
    regenerated: List[str]
    skipped: List[str]
    failed: Dict[str, List[UnitErrorModel]]
    previewed: List[str]
    warnings: List[str]
    pruned: List[str]
    summary: str


class TreeRequest(BaseModel):
    script: str


class TreeResponse(BaseModel):
    pages: Dict[str, str]


class HealthResponse(BaseModel):
    status: str


def _default_generator_factory(script: Path) -> Generator:
    return Generator.from_config(load_config(script))


def create_app(
    generator_factory: Callable[[Path], Generator] = _default_generator_factory,
) -> FastAPI:
    """Create the FastAPI application exposing dashgen operations."""

    app = FastAPI(title="Dashgen Service", version="1.0.0")

    async def get_generator_factory() -> Callable[[Path], Generator]:
        return generator_factory

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/generate", response_model=GenerateResponse)
    async def generate(
        payload: GenerateRequest,
        factory: Callable[[Path], Generator] = Depends(get_generator_factory),
    ) -> GenerateResponse:
        script = Path(payload.script)

        def _run_generate() -> GenerationReport:
            generator = factory(script)
            dashboard = load_dashboard(script)
            if payload.preview is not None:
                return generator.generate(dashboard, preview=payload.preview)
            settings = load_config(script).build.overridden(
                incremental=payload.incremental,
                render=payload.render,
                workers=payload.workers,
                output_dir=Path(payload.output_dir) if payload.output_dir else None,
            )
            return generator.generate(dashboard, **settings)

        report = await asyncio.get_running_loop().run_in_executor(None, _run_generate)
        data = report.to_dict()
        return GenerateResponse(status="ok" if report.ok else "failed", **data)

    @app.post("/tree", response_model=TreeResponse)
    async def tree(
        payload: TreeRequest,
        factory: Callable[[Path], Generator] = Depends(get_generator_factory),
    ) -> TreeResponse:
        script = Path(payload.script)

        def _run_tree() -> Dict[str, str]:
            return factory(script).tree_text(load_dashboard(script))

        pages = await asyncio.get_running_loop().run_in_executor(None, _run_tree)
        return TreeResponse(pages=pages)

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(_: Any, exc: ConfigurationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(DashgenError)
    async def dashgen_error_handler(_: Any, exc: DashgenError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    app = create_app()
    uvicorn.run(app, host=host, port=port)


__all__ = ["create_app", "run_service"]
