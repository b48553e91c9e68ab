"""ScreenOps FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from screenops.api.applications import router as applications_router
from screenops.api.auth import router as auth_router
from screenops.api.cron import router as cron_router
from screenops.api.forms import router as forms_router
from screenops.api.health import router as health_router
from screenops.api.participants import router as participants_router
from screenops.api.scoring import router as scoring_router
from screenops.api.screenings import router as screenings_router
from screenops.api.users import router as users_router
from screenops.api.webhooks import router as webhooks_router
from screenops.config import settings
from screenops.exceptions import ScreenOpsError
from screenops.utils.tasks import drain_detached_tasks

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Let CRM syncs that outlived their request finish before exit
    await drain_detached_tasks(settings.crm_sync_timeout_seconds)


app = FastAPI(
    title="ScreenOps - Applicant Screening Console",
    description="Scores applicant submissions, tracks screening and mirrors status to the CRM",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ScreenOpsError)
async def screenops_error_handler(request: Request, exc: ScreenOpsError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(health_router, tags=["Health"])
app.include_router(auth_router, prefix="/auth", tags=["Auth"])
app.include_router(applications_router, prefix="/v1/applications", tags=["Applications"])
app.include_router(participants_router, prefix="/v1/participants", tags=["Participants"])
app.include_router(users_router, prefix="/v1/users", tags=["Users"])
app.include_router(scoring_router, prefix="/v1/scoring", tags=["Scoring"])
app.include_router(forms_router, prefix="/v1/forms", tags=["Forms"])
app.include_router(screenings_router, prefix="/v1/screenings", tags=["Screenings"])
app.include_router(webhooks_router, prefix="/webhooks", tags=["Webhooks"])
app.include_router(cron_router, prefix="/cron", tags=["Cron"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"service": "ScreenOps", "version": "0.1.0", "docs": "/docs"}
