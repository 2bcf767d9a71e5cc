"""FastAPI application exposing head references to polling and dashboard clients."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import ConfigError, WhatGitBranchConfig, load_config
from ..coordinator import Coordinator
from ..locator import CONTEXT_HEARTBEAT, CONTEXT_REQUEST

CoordinatorFactory = Callable[[str], Coordinator]

T = TypeVar("T")


class HealthResponse(BaseModel):
    status: str


class HeadRefResponse(BaseModel):
    head_ref: str
    github_url: str


class RepositoryResponse(BaseModel):
    key: str
    name: str
    ref: str
    path: str
    github_url: str
    is_primary: bool


class ToolbarResponse(BaseModel):
    key: str
    name: str
    head_ref: str
    path: str
    github_url: str


class NoPrimaryError(LookupError):
    """Raised when an endpoint needs the primary repository and there is none."""


def _config_factory(config: WhatGitBranchConfig | None) -> CoordinatorFactory:
    def factory(context: str) -> Coordinator:
        settings = config if config is not None else load_config(Path.cwd())
        return Coordinator(settings, context=context)

    return factory


async def _run_blocking(func: Callable[[], T]) -> T:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:  # pragma: no cover - fallback path when not in async context
        return func()
    return await loop.run_in_executor(None, func)


def create_app(
    config: WhatGitBranchConfig | None = None,
    coordinator_factory: CoordinatorFactory | None = None,
) -> FastAPI:
    """Create the FastAPI application serving heartbeat and dashboard data."""

    factory = coordinator_factory or _config_factory(config)
    app = FastAPI(title="What Git Branch", version="1.0.0")

    async def get_coordinator() -> Coordinator:
        # A fresh coordinator per request so head references are re-read.
        return factory(CONTEXT_REQUEST)

    async def get_heartbeat_coordinator() -> Coordinator:
        return factory(CONTEXT_HEARTBEAT)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/heartbeat", response_model=Dict[str, HeadRefResponse])
    async def heartbeat(
        coordinator: Coordinator = Depends(get_heartbeat_coordinator),
    ) -> Dict[str, Dict[str, str]]:
        return await _run_blocking(coordinator.heartbeat_payload)

    @app.get("/repositories", response_model=List[RepositoryResponse])
    async def repositories(
        coordinator: Coordinator = Depends(get_coordinator),
    ) -> List[RepositoryResponse]:
        rows = await _run_blocking(coordinator.rows)
        return [RepositoryResponse(**row.as_dict()) for row in rows]

    @app.get("/toolbar", response_model=ToolbarResponse)
    async def toolbar(
        coordinator: Coordinator = Depends(get_coordinator),
    ) -> ToolbarResponse:
        def _toolbar() -> ToolbarResponse:
            primary = coordinator.primary()
            if primary is None:
                raise NoPrimaryError("No primary repository")
            return ToolbarResponse(
                key=primary.key(),
                name=primary.name,
                head_ref=primary.get_head_ref(),
                path=primary.path,
                github_url=primary.get_github_url(),
            )

        return await _run_blocking(_toolbar)

    @app.exception_handler(NoPrimaryError)
    async def no_primary_handler(
        _: Any, exc: NoPrimaryError
    ) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ConfigError)
    async def config_error_handler(
        _: Any, exc: ConfigError
    ) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(
    config: Optional[WhatGitBranchConfig] = None,
    host: str = "127.0.0.1",
    port: int = 8000,
) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app(config)
    uvicorn.run(app, host=host, port=port)
