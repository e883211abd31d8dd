"""
FastAPI REST API for the Nexus Grader
"""
import time
import logging
from fastapi import FastAPI
from typing import Dict, Any
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from ..utils.config import settings


from .routers import grade_api, llm_api

from ..utils.database_manager import DatabaseManager
from ..services.credential_service import ConfigStoreCredentialSource, SettingsCredentialSource
from ..services.grade_service import GradeService
from ..services.llm_service import LLMService
from ..services.question_service import QuestionGenerator
from ..services.submission_service import SubmissionService


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize services on application startup"""
    db_manager = None
    submission_service = None
    try:
        logger.info(f"Attempting to connect to database: {settings.database_url}")
        db_manager = DatabaseManager(settings.database_url)
        submission_service = SubmissionService(db_manager)
        logger.info("Database services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database services: {e}")
        # Grading does not need the database
        logger.warning("API starting without the submission store")

    if settings.use_config_store_credentials and db_manager is not None:
        credentials = ConfigStoreCredentialSource(db_manager)
        logger.info("Reading provider API key from the config store")
    else:
        credentials = SettingsCredentialSource(settings)

    provider = LLMService(credentials=credentials, settings=settings)
    grade_api.set_services(GradeService(llm=provider, settings=settings), submission_service)
    llm_api.set_services(provider, QuestionGenerator(llm=provider, settings=settings))
    logger.info(f"Provider chain: {', '.join(provider.models)}")

    yield

    # Cleanup on shutdown
    if db_manager is not None:
        db_manager.close()
    logger.info("Application shutdown")


# Create FastAPI app
app = FastAPI(
    title="Nexus Grader",
    description="AI-assisted grading for practice tests and submissions",
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root() -> Dict[str, Any]:
    """Root endpoint with API information"""
    return {
        "name": "Nexus Grader",
        "version": APP_VERSION,
        "description": "AI-assisted grading for practice tests and submissions",
        "routers": {
            "grade": "/grade - Grading, auto-score and practice history",
            "llm": "/llm - Question generation, JSON recovery and provider info"
        },
        "docs": "/docs",
        "timestamp": time.time()
    }


# Include routers
app.include_router(grade_api.router)
app.include_router(llm_api.router)
