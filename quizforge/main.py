"""
QuizForge — Question Quality & Generation Service
==================================================
FastAPI entry point.
  • AIError handler: error code → HTTP status, always the ErrorResponse envelope
  • Global exception handler: never crashes, always returns JSON
  • /api/v1/questions   validation, auto-fix, bulk import
  • /api/v1/generation  chunked AI question generation (+ SSE stream)
  • /api/v1/materials   study-material text extraction
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quizforge.api.v1.endpoints import generation, materials, questions
from quizforge.core.config import settings
from quizforge.core.errors import AIError, ErrorCode
from quizforge.schemas.common import ErrorResponse

# ── Logging ──────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# ── App ──────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="QuizForge — Question Quality & Generation Service",
    description=(
        "Validates, auto-fixes and bulk-imports quiz questions, and generates "
        "new ones from study material in retried, validated chunks."
    ),
    version=VERSION,
    responses={
        422: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)


# ── Error code → HTTP status ─────────────────────────────────────────────────
_STATUS_BY_CODE = {
    ErrorCode.VALIDATION_FAILED: 422,
    ErrorCode.INVALID_INPUT: 422,
    ErrorCode.MISSING_REQUIRED: 422,
    ErrorCode.AUTH_REQUIRED: 401,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.DUPLICATE: 409,
    ErrorCode.RATE_LIMIT: 429,
    ErrorCode.TIMEOUT: 504,
    ErrorCode.API_ERROR: 502,
    ErrorCode.NETWORK_ERROR: 502,
}


def status_for(code: ErrorCode) -> int:
    return _STATUS_BY_CODE.get(code, 500)


@app.exception_handler(AIError)
async def ai_error_handler(request: Request, exc: AIError):
    status_code = status_for(exc.code)
    logger.warning(f"[API] {request.url.path} → {status_code} {exc.code.value}: {exc.message}")
    body = ErrorResponse(
        message=exc.message,
        code=exc.code.value,
        detail=exc.details.message if exc.details.message != exc.message else None,
        context=exc.details.context,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


# ── Global Exception Handler ────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all: every unhandled exception returns a clean JSON envelope."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    body = ErrorResponse(
        message="An internal server error occurred.",
        code=ErrorCode.UNEXPECTED.value,
        detail=str(exc),
    )
    return JSONResponse(status_code=500, content=body.model_dump())


# ── CORS ─────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Health Check ─────────────────────────────────────────────────────────────
@app.get("/", tags=["System"])
async def health_check():
    return {
        "status": "operational",
        "service": "QuizForge",
        "version": VERSION,
        "ai_provider": settings.AI_PROVIDER,
    }


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(questions.router, prefix="/api/v1")
app.include_router(generation.router, prefix="/api/v1")
app.include_router(materials.router, prefix="/api/v1")
