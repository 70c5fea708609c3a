import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from scoutwatch.config import settings
from scoutwatch.exceptions import StoreOperationFailed, StoreUnavailable
from scoutwatch.api.routers import review

logger = logging.getLogger("scoutwatch.api")


def create_app(db_path: Optional[Path] = None) -> FastAPI:
    """
    Factory for the read-only review API.
    Passing db_path points the shared Database dependency at another file (used by tests).
    """
    if db_path:
        settings.paths.db_path = db_path
        import scoutwatch.api.deps as deps
        deps._db_instance = None  # reset global instance

    app = FastAPI(title="ScoutWatch Review API", version=settings.app.version)

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable(request: Request, exc: StoreUnavailable):
        logger.error(f"{request.url.path}: {exc}")
        return JSONResponse(status_code=503, content={"error": "store_unavailable", "detail": str(exc)})

    @app.exception_handler(StoreOperationFailed)
    async def store_failed(request: Request, exc: StoreOperationFailed):
        logger.error(f"{request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"error": "store_operation_failed", "detail": str(exc)})

    @app.get("/health")
    def health():
        return {"status": "ok", "version": settings.app.version}

    app.include_router(review.router)
    return app
