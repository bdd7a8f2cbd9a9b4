from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from talent_match.middleware.error_handlers import ExceptionHandlerMiddleware, PerformanceMiddleware
from talent_match.routers import match
from talent_match.utils.logging_config import configure_for_environment, get_logger

# Configure logging first
configure_for_environment()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager"""
    logger.info("Talent Match API starting up...")
    yield
    logger.info("Talent Match API shutting down...")


app = FastAPI(title="Talent Match API", version="1.0.0", lifespan=lifespan)

# Exception handler should be the outermost middleware (added last)
app.add_middleware(PerformanceMiddleware)
app.add_middleware(ExceptionHandlerMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
@app.head("/")
async def root():
    logger.debug("Root endpoint accessed")
    return {"message": "Welcome to the Talent Match API", "version": "1.0.0", "status": "ok"}


@app.get("/health")
@app.head("/health")
async def health_check():
    """Health check endpoint - handles both GET and HEAD requests"""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


app.include_router(match.router, prefix="/api")

logger.info("Talent Match API initialized successfully")
