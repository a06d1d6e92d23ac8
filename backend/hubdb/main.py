# backend/hubdb/main.py
import logging
import os
from typing import List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import TrainingError
from .apps.workflow import TransitionError

from .apps.audit.router import router as audit_router
from .apps.catalog.router import router as catalog_router
from .apps.progress.router import router as progress_router
from .apps.assignments.router import router as assignments_router
from .apps.grading.router import router as grading_router
from .apps.certificates.router import router as certificates_router

logger = logging.getLogger(__name__)


def _allowed_origins() -> List[str]:
    """
    Parse CORS_ALLOWED_ORIGINS from env.

    Accepts comma-separated origins. If unset, defaults to local dev ports.
    """
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if raw:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
        if origins:
            return origins
    return [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
        "http://localhost:4173",
    ]


app = FastAPI(title="HIPAA Training Hub API", version="1.0.0")
cors_origins = _allowed_origins()
allow_credentials = "*" not in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TrainingError)
async def training_error_handler(request: Request, exc: TrainingError):
    if exc.status_code >= 500:
        logger.error("Request failed: %s", exc.detail, extra={"path": request.url.path, "code": exc.code})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(TransitionError)
async def transition_error_handler(request: Request, exc: TransitionError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/", tags=["health"])
def read_root():
    return {"status": "ok", "message": "HIPAA Training Hub backend is running"}


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


app.include_router(catalog_router)
app.include_router(progress_router)
app.include_router(assignments_router)
app.include_router(grading_router)
app.include_router(certificates_router)
app.include_router(audit_router)
