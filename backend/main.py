from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from api.router import api_router
from core.config import settings
from core.logging import setup_logging
from solver.input_builder import InputError


logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    setup_logging(environment=settings.environment, solver_level=settings.solver_log_level)
    is_production = settings.is_production
    app = FastAPI(
        title="School Timetable Scheduler API",
        version="0.1.0",
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
    )

    @app.exception_handler(InputError)
    def _invalid_input(_request, exc: InputError):
        logger.info("Rejected scheduling input (400) errors=%s", len(exc.errors))
        return JSONResponse(
            status_code=400,
            content={
                "code": exc.code,
                "message": "Scheduling input is malformed.",
                "details": list(exc.errors),
            },
        )

    allow_origins = [settings.frontend_origin]
    allow_origin_regex = None
    if not is_production:
        # Dev-friendly: allow the configured origin and any localhost port.
        allow_origins.extend(["http://localhost:5173", "http://127.0.0.1:5173"])
        allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_origin_regex=allow_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict:
        return {"app": "ok", "environment": settings.environment}

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=not settings.is_production)
