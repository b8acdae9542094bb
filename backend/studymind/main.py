# Load environment variables FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

import os
import logging
import sentry_sdk
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from studymind.config import get_allowed_origins
from studymind.database import engine, Base
from studymind.routers import doubts, materials, progress, quiz
from studymind.routers.doubts import SESSION_HEADER
from studymind.services.background import drain_background_tasks

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Sentry for error monitoring
sentry_dsn = os.getenv("SENTRY_DSN")
if sentry_dsn:
    sentry_sdk.init(
        dsn=sentry_dsn,
        traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
        environment=os.getenv("ENVIRONMENT", "development"),
    )

# Create database tables
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - runs on startup and shutdown."""
    if not os.getenv("AI_GATEWAY_API_KEY"):
        logger.warning("AI_GATEWAY_API_KEY is not set - AI endpoints will return 500")

    yield  # Application runs here

    # SHUTDOWN: let detached persistence tasks finish their writes
    logger.info("Shutting down...")
    await drain_background_tasks()


tags_metadata = [
    {
        "name": "doubts",
        "description": "Step-by-step AI tutoring answers streamed as Server-Sent Events, with saved conversations.",
    },
    {
        "name": "quiz",
        "description": "AI-generated multiple-choice quizzes and quiz attempt scoring.",
    },
    {
        "name": "materials",
        "description": "Study document upload, text extraction, chunking and document Q&A.",
    },
    {
        "name": "progress",
        "description": "Study timer sessions, XP and daily streaks.",
    },
]

app = FastAPI(
    title="StudyMind API",
    description="""
## StudyMind AI Study Assistant

Backend for StudyMind. Proxies a hosted LLM gateway for quiz generation,
doubt solving and document Q&A, and keeps track of study progress.

### Streaming
`/solve-doubt` and `/query-material` return the gateway's
`text/event-stream` unchanged. Signed-in students' doubt conversations are
saved in the background while the answer streams.
    """,
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=tags_metadata,
)

ALLOWED_ORIGINS = get_allowed_origins()

# Wildcard origins cannot be combined with credentials
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials="*" not in ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[SESSION_HEADER],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


# Include routers
app.include_router(doubts.router)  # Doubt solving + history
app.include_router(quiz.router)  # Quiz generation + attempts
app.include_router(materials.router)  # Material upload, processing, Q&A
app.include_router(progress.router)  # Study sessions, XP, streaks


@app.get("/")
def root():
    return {
        "message": "StudyMind API",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    return {"status": "healthy"}
