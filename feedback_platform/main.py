from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from feedback_platform.config import get_settings
from feedback_platform.dependencies.services import build_follow_up_worker, get_live_backends
from feedback_platform.health import router as health_router
from feedback_platform.routes.feedback import request_validation_error_handler
from feedback_platform.routes.feedback import router as feedback_router


def configure_logging() -> None:
    """Ensure application logs use the INFO level by default."""
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
    else:
        root_logger.setLevel(logging.INFO)


configure_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    settings_snapshot = settings.model_dump(exclude={"redis_url"})
    logger.info("Application settings on startup: %s", settings_snapshot)

    worker = None
    if settings.follow_up_worker_enabled:
        worker = build_follow_up_worker(settings)
        worker.start()
    logger.info("Application startup complete.")

    try:
        yield
    finally:
        if worker is not None:
            await worker.stop()
        if not settings.use_mock_data:
            backends = get_live_backends()
            if backends.directory is not None:
                logger.info("Closing company directory client.")
                await backends.directory.close()
            if backends.redis is not None:
                await backends.redis.aclose()
        logger.info("Application shutdown complete.")


settings = get_settings()
app = FastAPI(
    title=settings.app_name,
    lifespan=lifespan,
    redirect_slashes=False,
)

app.add_exception_handler(RequestValidationError, request_validation_error_handler)
app.include_router(feedback_router)
app.include_router(health_router)
