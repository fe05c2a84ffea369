"""Entrypoint for running the session API under uvicorn."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from cube_sessions.infrastructure.http.middleware import request_logging_middleware
from cube_sessions.infrastructure.http.routes import (
    add_error_handlers,
    add_health_route,
    add_session_routes,
)
from cube_sessions.observability.logging import init_logging, shutdown_logging
from cube_sessions.observability.tracing import SERVICE_NAME, configure_tracing
from cube_sessions.runtime.bootstrap import RuntimeContext, build_runtime, shutdown_runtime
from cube_sessions.runtime.settings import Settings


def create_app(runtime: RuntimeContext) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        yield
        await run_in_threadpool(shutdown_runtime, runtime)
        shutdown_logging()

    app = FastAPI(title="Cube Sessions API", version="0.1.0", lifespan=lifespan)
    app.state.runtime = runtime
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(runtime.settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    app.middleware("http")(request_logging_middleware)

    add_error_handlers(app)
    add_health_route(app)
    add_session_routes(app, runtime.session_route_deps_provider)
    return app


def build_app() -> FastAPI:
    """Application factory: configure observability, load settings and wire the runtime."""
    init_logging()
    configure_tracing(service_name=SERVICE_NAME)
    return create_app(build_runtime(Settings.load()))


def main() -> None:
    import uvicorn

    app = build_app()
    settings = app.state.runtime.settings
    config = uvicorn.Config(
        app,
        host=settings.listen_host,
        port=settings.listen_port,
        # logging already setup
        log_config=None,
    )
    uvicorn.Server(config).run()


__all__ = ["build_app", "create_app", "main"]
