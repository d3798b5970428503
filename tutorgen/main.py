"""
tutorgen - AI generation orchestration for a learning platform
Main FastAPI Application
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tutorgen import __version__
from tutorgen.config import get_settings
from tutorgen.services.errors import GenerationError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and the orchestrator on startup; close pools on shutdown"""
    from tutorgen.services.factory import build_orchestrator
    from tutorgen.utils import init_db, close_db, close_redis

    await init_db()
    if getattr(app.state, "orchestrator", None) is None:
        app.state.orchestrator = build_orchestrator()
    yield
    await app.state.orchestrator.ledger.alerter.drain()
    await close_db()
    await close_redis()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app() -> FastAPI:
    """Factory function to create FastAPI app"""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    application = FastAPI(
        title="tutorgen API",
        description="""
        AI generation orchestration for learning content

        ## Features
        - Learning plans, daily lessons, quizzes and flashcards as validated JSON
        - Retrieval-grounded prompts with graceful fallback
        - Content-addressed caching shared across learners
        - Per-user and global daily budgets with an endpoint circuit breaker
        """,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc" if settings.is_development else None,
    )

    # CORS middleware
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.exception_handler(GenerationError)
    async def generation_error_handler(request: Request, exc: GenerationError):
        headers = {"Retry-After": "3600"} if exc.status_code == 429 else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    # Global exception handler
    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unexpected errors"""
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        if get_settings().DEBUG:
            return JSONResponse(
                status_code=500,
                content={
                    "detail": str(exc),
                    "type": type(exc).__name__,
                },
            )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    from tutorgen.api.routes import api_router
    application.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")

    from tutorgen.admin import admin_router
    application.include_router(admin_router, prefix="/admin", tags=["admin"])

    @application.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "version": __version__,
            "environment": get_settings().APP_ENV,
        }

    return application


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()

    uvicorn.run(
        "tutorgen.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development,
        workers=1 if settings.is_development else settings.WORKERS,
    )
