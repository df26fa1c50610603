import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config
from .api.endpoints import auth, dashboard, surveys
from .database import Database
from .services.extraction import ExtractionClient
from .services.google_oauth import GoogleOAuthClient

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api"


# --- Lifecycle: every shared resource is built here and torn down here ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting...")
    app.state.db = Database(config.DATABASE_URL, echo=config.DB_ECHO)
    app.state.extractor = ExtractionClient()
    app.state.oauth = GoogleOAuthClient()
    if config.DB_AUTO_CREATE:
        await app.state.db.create_all()
    yield
    logger.info("Application shutting down...")
    await app.state.oauth.close()
    await app.state.extractor.close()
    await app.state.db.dispose()


app = FastAPI(title="Survey Builder Backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix=API_PREFIX)
app.include_router(surveys.router, prefix=API_PREFIX)
app.include_router(dashboard.router, prefix=API_PREFIX)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get(f"{API_PREFIX}/health/db")
async def health_db(request: Request):
    await request.app.state.db.ping()
    return {"db": "ok"}
