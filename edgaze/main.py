from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from edgaze.core.errors import EdgazeError, UpstreamFailure
from edgaze.core.logging import configure_logging
from edgaze.database import Database
from edgaze.routers.admin import router as admin_router
from edgaze.routers.auth import router as auth_router
from edgaze.routers.bugs import router as bugs_router
from edgaze.routers.demo_runs import router as demo_runs_router
from edgaze.routers.flow_runs import router as flow_runs_router
from edgaze.routers.reports import router as reports_router
from edgaze.services.rate_limit import build_bug_report_limiter, create_redis
from edgaze.services.storage import LocalFileSystemBackend, get_storage_root

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()

    app.state.database = Database()
    app.state.storage = LocalFileSystemBackend(get_storage_root())
    app.state.redis = create_redis()
    app.state.bug_report_limiter = build_bug_report_limiter(app.state.redis)
    try:
        yield
    finally:
        await app.state.redis.aclose()
        app.state.database.dispose()


app = FastAPI(
    title="Edgaze API",
    lifespan=lifespan,
)


@app.middleware("http")
async def catch_unhandled_exceptions(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception:
        logger.exception("Unhandled exception")
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


@app.exception_handler(EdgazeError)
async def edgaze_error_handler(request: Request, exc: EdgazeError):
    if isinstance(exc, UpstreamFailure):
        logger.error(
            "Upstream failure",
            extra={"path": request.url.path, "code": exc.error.code, "details": exc.error.details},
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(auth_router)
app.include_router(flow_runs_router)
app.include_router(admin_router)
app.include_router(demo_runs_router)
app.include_router(reports_router)
app.include_router(bugs_router)


@app.get("/")
def root():
    return {"status": "Edgaze API running"}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "version": "1.0.0",
    }
