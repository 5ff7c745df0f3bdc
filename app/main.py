# app/main.py
import logging
import os
import time

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.modules.router import router as modules_router
from core.conf import settings
from core.config import wire_services
from core.logging import get_logger

logger = get_logger(__name__)


def log_route_map(routes) -> int:
    """Log one ROUTE line per path-bearing route; returns how many were logged."""
    logged = 0
    for route in routes:
        path = getattr(route, "path", None)
        if path is None:
            # included-router placeholders on newer Starlette carry no path
            continue
        logging.getLogger("router.map").info(
            "ROUTE %s %s", ",".join(sorted(getattr(route, "methods", None) or [])), path
        )
        logged += 1
    return logged


def create_app():
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        docs_url="/docs" if settings.ENVIRONMENT == "dev" else None,
        redoc_url="/redoc" if settings.ENVIRONMENT == "dev" else None,
        openapi_url="/openapi.json" if settings.ENVIRONMENT == "dev" else None,
    )
    wire_services(app)
    app.include_router(modules_router)

    # Middleware to log every request
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        logger.info(f"Incoming request: {request.method} {request.url.path}")

        response = await call_next(request)

        process_time = (time.time() - start_time) * 1000
        logger.info(f"Response status: {response.status_code} | Time: {process_time:.2f}ms")
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=settings.CORS_EXPOSE_HEADERS,
    )

    log_route_map(app.routes)

    return app


app = create_app()


@app.api_route("/healthz", methods=["GET", "HEAD"], include_in_schema=False)
async def healthz():
    return JSONResponse({"status": "ok", "memory_backend": settings.MEMORY_BACKEND})


@app.on_event("startup")
async def startup_event():
    """Application startup event handler."""
    logger.info("Starting Creator Smart Replies API...")

    from app.services.store.db import init_database

    if not await init_database():
        logger.warning("Profile/message tables unavailable; smart replies will fail on persona load")

    logger.info("Application startup completed successfully")


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("app.main:app", host="0.0.0.0", port=port)
