"""FastAPI application entrypoint."""

import logging

from fastapi import FastAPI

from apikit.api.diagnostics import router as diagnostics_router
from apikit.api.fallback import router as fallback_router
from apikit.api.users import router as users_router
from apikit.core.config import get_settings
from apikit.core.errors import register_error_handlers
from apikit.db import models as _models  # noqa: F401

logger = logging.getLogger(__name__)

settings = get_settings()
logger.info("Starting %s with settings=%s", settings.app_name, settings.safe_for_logging())

app = FastAPI(title=settings.app_name, version=settings.app_version)
register_error_handlers(app)
app.include_router(diagnostics_router)
app.include_router(users_router)
# Must stay last: it matches every remaining /api path.
app.include_router(fallback_router)


@app.get("/health")
def health() -> dict[str, str]:
    """Health check stub endpoint for service readiness."""
    return {"status": "ok"}
