from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
import uvicorn
from fastapi.middleware.cors import CORSMiddleware
from api.bootstrap import ServiceContainer, build_container_from_settings
from api.routes.worker_routes import worker_routes
from api.config import create_db
from api.utils.logger import configure_logging, set_request_id, clear_request_id
from api.ws import broadcast_queue_snapshot
from fastapi import Request
from starlette.responses import Response, JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException

logger = configure_logging()


def create_app(container_factory: Optional[Callable[[], ServiceContainer]] = None) -> FastAPI:
    factory = container_factory or build_container_from_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if container_factory is None:
            create_db()
        container = factory()
        container.profile_store.load_progress()
        unsubscribe = container.worker.subscribe(broadcast_queue_snapshot)
        detach_prefetch = (
            container.prefetcher.attach() if container.settings.prefetch_on_profile_change else (lambda: None)
        )
        app.state.container = container
        logger.info("content worker ready")
        try:
            yield
        finally:
            detach_prefetch()
            unsubscribe()
            await container.worker.shutdown()
            logger.info("content worker stopped")

    app = FastAPI(lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_logger(request: Request, call_next):
        rid = set_request_id(request.headers.get("x-request-id"))
        try:
            logger.info("request start method=%s path=%s client=%s", request.method, request.url.path, request.client)
            response: Response = await call_next(request)
            logger.info("request end status=%s method=%s path=%s", response.status_code, request.method, request.url.path)
            response.headers["x-request-id"] = rid
            return response
        except Exception:
            logger.exception("request error method=%s path=%s", request.method, request.url.path)
            raise
        finally:
            clear_request_id()

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        # Log server-side errors with stack traces; client errors as warnings.
        if exc.status_code >= 500:
            logger.exception("http error status=%s method=%s path=%s detail=\n%s", exc.status_code, request.method, request.url.path, exc.detail)
        else:
            logger.warning("http error status=%s method=%s path=%s detail=\n%s", exc.status_code, request.method, request.url.path, exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("validation error method=%s path=%s errors=\n%s", request.method, request.url.path, exc.errors())
        return JSONResponse(status_code=422, content={"detail": exc.errors()})

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.include_router(worker_routes)
    return app


if __name__ == "__main__":
    uvicorn.run("api.api:create_app", factory=True, host="0.0.0.0", port=8000, reload=True)
