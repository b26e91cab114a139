"""
FastAPI main application for the pet search service.
"""

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from pet_search import __version__
from pet_search.config import get_search_settings
from pet_search.db import init_db, close_db
from pet_search.dependencies import get_services
from pet_search.error_handling import SearchServiceError
from pet_search.routers import search, saved_searches, telemetry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    logger.info("Starting Pet Search API...")
    await init_db(get_search_settings())
    logger.info("Database initialized")

    yield

    # Shutdown
    logger.info("Shutting down Pet Search API...")
    get_services.cache_clear()
    await close_db()


app = FastAPI(
    title="Pet Search API",
    description="Cross-entity search over posts, wiki articles, places, pets and groups",
    version=__version__,
    lifespan=lifespan
)

# CORS middleware - allow all origins for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SearchServiceError)
async def search_service_error_handler(request: Request, exc: SearchServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part not in ("query", "body", "path")),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": __version__
    }


app.include_router(search.router, tags=["search"])
app.include_router(saved_searches.router, tags=["saved-searches"])
app.include_router(telemetry.router, tags=["telemetry"])
