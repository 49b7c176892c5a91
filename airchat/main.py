"""Main FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import airchat.models  # noqa: F401  registers every table on Base.metadata
from airchat.api.v1.router import api_router
from airchat.core.config import settings
from airchat.core.context import AppContext
from airchat.core.database import Base, build_engine, build_session_factory
from airchat.core.exceptions import AirChatError
from airchat.core.logging import setup_logging
from airchat.core.redis import RedisClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    engine = build_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    context = AppContext.build(
        settings=settings,
        engine=engine,
        session_factory=build_session_factory(engine),
        redis_client=await RedisClient.get_client(),
    )
    app.state.context = context
    logger.info("AirChat started")
    yield
    # Shutdown
    await context.close()


app = FastAPI(
    title="AirChat API",
    description="Chat rooms, private messages, friends and a shared mic stage",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware - must be added before routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,  # Must be False when allow_origins is ["*"]
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(AirChatError)
async def airchat_error_handler(request: Request, exc: AirChatError):
    """Turn service errors into a notice the client can show."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_notice()})


# Include API router
app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "airchat"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "AirChat API", "version": "0.1.0"}
