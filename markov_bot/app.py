"""
Markov Chat Service
Main application entry point

Trains per-user and per-chat Markov chains from chat messages forwarded by
the bot client and answers /msg and /deletemydata commands.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from markov_bot.config import settings
from markov_bot.dependencies import set_bot_service
from markov_bot.utils.logger import setup_logger

# Setup logging (children of "markov_bot" propagate here)
logger = setup_logger("markov_bot")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for service initialization"""
    from markov_bot.services.bot import MarkovBotService
    from markov_bot.services.chat_store import ChatStore
    from markov_bot.services.prompts import PromptStore

    logger.info("[BOOT] Starting Markov chat service...")
    logger.info(f"[BOOT] MongoDB: {settings.MONGODB_URI} db={settings.MONGODB_DB}")

    store = ChatStore()
    try:
        store.ensure_indexes()
        app.state.bot_service = MarkovBotService(store, PromptStore())
        set_bot_service(app.state.bot_service)
        logger.info("[BOOT] Markov chat service ready!")
        yield

    except Exception as e:
        logger.error(f"[ERR] Failed to initialize: {e}", exc_info=True)
        raise
    finally:
        logger.info("[SHUTDOWN] Cleaning up...")
        set_bot_service(None)
        store.close()
        logger.info("[SHUTDOWN] Markov chat service stopped")


# Create FastAPI app
app = FastAPI(
    title="Markov Chat Service",
    description="Markov chain message generator for chat bots",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"[ERR] Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "ok": False,
            "error": {
                "code": "MARKOV_SERVICE_ERROR",
                "message": "Internal server error occurred",
                "details": {"type": type(exc).__name__},
            },
        },
    )


# Health check
@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "ok": True,
        "data": {
            "status": "healthy",
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
        },
    }


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "endpoints": {
            "health": "/health",
            "docs": "/docs",
            "markov": "/markov/*",
        },
    }


from markov_bot.api.routers import markov_router

app.include_router(markov_router.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "markov_bot.app:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
