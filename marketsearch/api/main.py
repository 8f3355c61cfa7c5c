"""
FastAPI main application for marketplace search.
"""

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from marketsearch import __version__
from marketsearch.api.db import init_db, close_db
from marketsearch.api.routers import search

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting Marketplace Search API...")
    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down Marketplace Search API...")
    await close_db()


app = FastAPI(
    title="Marketplace Search API",
    description="Faceted, geographic and autocomplete search over marketplace listings",
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


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": __version__
    }


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Marketplace Search API",
        "docs": "/docs",
        "health": "/health",
    }


app.include_router(search.router, prefix="/api", tags=["search"])
