from __future__ import annotations

import contextlib
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from dotenv import load_dotenv

from persistence.interfaces import RecordStore
from persistence.record_store import JsonRecordStore, PersistenceError
from persistence.repositories import AsyncStoreRepository
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

MSG_PERSIST_FAILED = "Failed to persist tasks."


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    mcp = getattr(app.state, "mcp", None)
    if mcp is None:
        yield
    else:
        async with mcp.session_manager.run():
            yield


def create_app(settings: Settings | None = None, store: RecordStore | None = None) -> FastAPI:
    load_dotenv("local.env")
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    from endpoints.task_endpoints import router as task_router

    if store is None:
        store = JsonRecordStore(settings.db_path, strict=settings.strict_persist)

    app = FastAPI(title="Tasks API", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.repository = AsyncStoreRepository(store)
    app.state.mcp = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.debug_log_requests:

        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            started = time.perf_counter()
            response = await call_next(request)
            logger.info(
                "REQUEST: %s %s -> %s (%.1f ms)",
                request.method,
                request.url.path,
                response.status_code,
                (time.perf_counter() - started) * 1000,
            )
            return response

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        logger.error("REQUEST FAILED: %s %s: %r", request.method, request.url.path, exc)
        return JSONResponse({"detail": MSG_PERSIST_FAILED}, status_code=500)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.include_router(task_router)

    if settings.enable_mcp:
        from endpoints.mcp_endpoints import build_mcp

        mcp = build_mcp(app.state.repository)
        mcp.settings.streamable_http_path = "/"
        app.state.mcp = mcp

        @app.post("/mcp")
        async def mcp_redirect_post():
            return RedirectResponse(url="/mcp/", status_code=307)

        @app.get("/mcp")
        async def mcp_redirect_get():
            return RedirectResponse(url="/mcp/", status_code=307)

        app.mount("/mcp", mcp.streamable_http_app())

    return app


def main() -> None:
    import uvicorn

    uvicorn.run("app:create_app", factory=True, host="127.0.0.1", port=8000)


if __name__ == "__main__":
    main()
