"""
Main FastAPI application entry point
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from .api import router
from .core import engine, settings
from .models import Base

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown"""
    logger.info("🚀 Starting upload server...")

    Path(settings.TEMP_UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
    Path(settings.COMPLETED_UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
    if settings.DATABASE_URL.startswith("sqlite:///"):
        Path(settings.DATABASE_URL[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

    Base.metadata.create_all(bind=engine)
    logger.info("✅ Database tables created/verified")
    logger.info(f"🌐 Server ready at http://{settings.SERVER_HOST}:{settings.SERVER_PORT}")

    yield

    logger.info("🛑 Shutting down upload server...")
    engine.dispose()


app = FastAPI(
    title=settings.APP_TITLE,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

app.include_router(router)


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "healthy"}


def run():
    """Console entry point"""
    import uvicorn
    uvicorn.run(
        app,
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    run()
