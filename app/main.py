"""
Brand Ads Analytics Service
Main FastAPI application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from app.config import get_settings
from app.utils.logger import log
from app.utils.response_cache import ResponseCache
from app import __version__

# Import routers
from app.api import health, metrics, recommendations, consultant

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    # One cache per process, handed to handlers through a dependency
    app.state.response_cache = ResponseCache(max_entries=settings.metrics_cache_max_entries)

    try:
        from app.models.base import init_db
        init_db()
        log.info("Database initialized")
    except Exception as e:
        log.error(f"Database initialization error: {str(e)}")

    yield

    app.state.response_cache.clear()
    log.info("Shutting down application")


app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Meta Ads analytics for Shopify brands

    - De-duplicated daily Meta Ads metrics with growth and data-quality warnings
    - Weekly campaign recommendations from Claude, with a rule-based fallback
    - Marketing consultant answers grounded in the brand's own numbers
    """,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["health"])
app.include_router(metrics.router)
app.include_router(recommendations.router)
app.include_router(consultant.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
