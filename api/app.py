from __future__ import annotations

import math
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse

from api.routes import sessions as session_routes
from api.services.sessions import SessionRegistry


def _json_safe(value: Any) -> Any:
    # JSON has no NaN/Infinity; echo rejected inputs back as strings.
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_json_safe(v) for v in value]
    return value


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"detail": _json_safe(jsonable_encoder(exc.errors()))},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Kettlebell VBT API",
        description="REST API feeding pose-derived frames into kbvbt snatch detectors.",
        version="0.1.0",
    )
    app.state.sessions = SessionRegistry()
    app.include_router(session_routes.router)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.get("/", include_in_schema=False)
    async def redirect_to_docs() -> RedirectResponse:
        return RedirectResponse(url="/docs")

    return app


app = create_app()
