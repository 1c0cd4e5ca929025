"""
Main FastAPI application entry point.
Responsibilities: App setup, router registration, startup/shutdown hooks.
"""
from fastapi import FastAPI

from .routes import chat, documents
from .db.migrations import init_db
from .logging_config import logger

# -------------------------------------------------
# App setup
# -------------------------------------------------

app = FastAPI(title="RAG Chat", version="0.1.0")

# Register routers
app.include_router(chat.router)
app.include_router(documents.router)


@app.on_event("startup")
async def startup_event():
    """Bring the database schema up to date."""
    try:
        logger.info("Running database migrations...")
        init_db()
        logger.info("Database migrations completed")
    except Exception as e:
        logger.error("Startup initialization error", exc_info=e)
        # Continue anyway - the schema may already exist


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Application shutting down")


@app.get("/health")
async def health():
    return {"status": "ok"}
