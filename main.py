# main.py
"""Main application: logging, database, backend clients and routers"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from config import settings
from services.logger_config import setup_logging
from database.session import init_db, async_engine
from api.endpoints import health_router, documents_router, sessions_router, messages_router
from api.errors import register_exception_handlers
from core.exceptions import BackendError
from services.factory import build_llm_service, build_vector_store_adapter

setup_logging()
logger = logging.getLogger(settings.LOGGER_NAME)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting application...")

    # Database initialization
    await init_db()

    # Backend clients live for the whole process
    app.state.vector_store = build_vector_store_adapter()
    app.state.llm_service = build_llm_service()
    try:
        state = await app.state.vector_store.initialize()
        logger.info(f"Vector store state: {state.value}")
    except BackendError as e:
        # Adapter stays uninitialized and retries on first use
        logger.warning(f"Vector store not available at startup: {e}")

    logger.info("Services initialized")
    yield

    await async_engine.dispose()
    logger.info("Application shutdown complete")

app = FastAPI(
    title=settings.APP_TITLE,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

register_exception_handlers(app)
app.include_router(health_router)
app.include_router(documents_router)
app.include_router(sessions_router)
app.include_router(messages_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level=settings.LOG_LEVEL.lower()
    )
