"""FastAPI application entry point."""
import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from slugshare.config import settings
from slugshare.database import async_session, engine, get_db, init_models
from slugshare.errors import FileShareError

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and the bootstrap admin on startup, start the expiry sweeper."""
    await init_models()

    from slugshare.services.seed_admin import seed_admin
    async with async_session() as session:
        await seed_admin(session, settings.ADMIN_BOOTSTRAP_USERNAME, settings.ADMIN_BOOTSTRAP_PASSWORD)

    sweeper_task = None
    if settings.EXPIRY_SWEEP_INTERVAL_SECONDS > 0:
        from slugshare.services.expiry_sweeper import sweeper_loop
        sweeper_task = asyncio.create_task(sweeper_loop(settings.EXPIRY_SWEEP_INTERVAL_SECONDS))

    yield

    if sweeper_task:
        sweeper_task.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper_task
    await engine.dispose()


app = FastAPI(
    title="Slugshare API",
    version="1.0.0",
    description="Short-link file sharing with passcodes, expiry and an ad interstitial.",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=600,
)


@app.exception_handler(FileShareError)
async def file_share_error_handler(request: Request, exc: FileShareError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"success": False, "error": "Malformed request."})


@app.get("/api/health")
async def health_check():
    """Verify API and database connectivity."""
    try:
        async for db in get_db():
            await db.execute(text("SELECT 1"))
            return {"status": "ok", "database": "connected"}
    except Exception as e:
        return {"status": "error", "database": str(e)}


# Register routers
from slugshare.routes.files import router as files_router
from slugshare.routes.short_links import router as short_links_router
from slugshare.routes.admin import router as admin_router
app.include_router(files_router)
app.include_router(short_links_router)
app.include_router(admin_router)


def run():
    """Console entry point: serve the app with uvicorn."""
    import uvicorn
    uvicorn.run("slugshare.main:app", host="0.0.0.0", port=settings.API_PORT)
