from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from contextlib import asynccontextmanager
from typing import Optional
import logging

from bloglab.api import comments, feed, likes, posts, users
from bloglab.config import Settings, get_settings
from bloglab.db.base import utcnow
from bloglab.exceptions import BlogLabError, RateLimitExceededError
from bloglab.services import build_services
from bloglab.stores import BackingStore, CacheStore, create_stores
from bloglab.utils.rate_limit import limiter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

def create_app(
    settings: Optional[Settings] = None,
    store: Optional[BackingStore] = None,
    cache: Optional[CacheStore] = None
) -> FastAPI:
    """Build the application.

    Stores passed in are owned by the caller; stores created from settings
    are closed on shutdown.
    """
    settings = settings or get_settings()
    logging.getLogger("bloglab").setLevel(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup and shutdown events"""
        logger.info(f"Starting up with the {settings.STORE_BACKEND} store...")

        owned = store is None
        if owned:
            backing, cache_store = await create_stores(settings)
        else:
            backing, cache_store = store, cache

        app.state.settings = settings
        app.state.services = build_services(backing, cache_store, settings)

        yield

        logger.info("Shutting down...")
        if owned:
            await backing.close()
            if cache_store is not None:
                await cache_store.close()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="Engagement ranking and comment threading over interchangeable stores",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan
    )

    # Rate limiter
    app.state.limiter = limiter

    @app.exception_handler(BlogLabError)
    async def bloglab_error_handler(request: Request, exc: BlogLabError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error": type(exc).__name__, "context": exc.context}
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.info(f"Rate limit exceeded on {request.url.path}: {exc.detail}")
        error = RateLimitExceededError("Rate limit exceeded", context={"limit": str(exc.detail)})
        return await bloglab_error_handler(request, error)

    # Include routers
    app.include_router(users.router, prefix="/api/v1/users", tags=["Users"])
    app.include_router(posts.router, prefix="/api/v1/posts", tags=["Posts"])
    app.include_router(comments.router, prefix="/api/v1/comments", tags=["Comments"])
    app.include_router(likes.router, prefix="/api/v1/likes", tags=["Likes"])
    app.include_router(feed.router, prefix="/api/v1/feed", tags=["Feed"])

    @app.get("/")
    async def root():
        """Root endpoint with API information"""
        return {
            "message": f"Welcome to {settings.PROJECT_NAME}",
            "version": settings.VERSION,
            "backend": settings.STORE_BACKEND,
            "docs": "/api/docs"
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "backend": app.state.services.store.backend_name,
            "timestamp": utcnow().isoformat()
        }

    return app

if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "bloglab.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
