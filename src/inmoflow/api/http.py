# src/inmoflow/api/http.py
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from inmoflow.adapters.config import config
from inmoflow.adapters.logging_utils import get_logger, log_event
from inmoflow.adapters.memory_repo import Repositories
from inmoflow.domain.errors import InvalidInputError, InvalidTransitionError, NotFoundError

from .routers import esign, forecasts, maps, portals, pricing, properties

logger = get_logger(__name__)


def create_app(repos: Repositories | None = None) -> FastAPI:
    """
    Build the back-office API over a set of stores.

    Each call gets its own stores (seeded demo data unless `repos` is
    given), so tests never share state.
    """
    app = FastAPI(title="inmoflow", version="0.1.0")
    app.state.repos = repos if repos is not None else Repositories.seeded()

    @app.exception_handler(NotFoundError)
    def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidInputError)
    def _invalid(request: Request, exc: InvalidInputError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc), "errors": exc.errors})

    @app.exception_handler(InvalidTransitionError)
    def _conflict(request: Request, exc: InvalidTransitionError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "env": config.ENV}

    for module in (properties, maps, forecasts, pricing, portals, esign):
        app.include_router(module.router)

    log_event(logger, "app_created", env=config.ENV, properties=len(app.state.repos.properties))
    return app


app = create_app()
