import logging
from pathlib import Path

from fastapi import FastAPI

from injection_rotation import __version__
from injection_rotation.api import api_router
from injection_rotation.api.injection import get_rotation_service
from injection_rotation.core.logging import configure_logging
from injection_rotation.core.settings import get_settings

configure_logging()
settings = get_settings()
logger = logging.getLogger(__name__)

app = FastAPI(title="Injection Site Rotation", version=__version__)

app.include_router(api_router, prefix="/api")


@app.on_event("startup")
async def startup_event() -> None:
    data_dir = Path(settings.data.data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Using data directory: %s", data_dir)

    # Loads the catalog and history once so configuration errors surface at boot
    get_rotation_service()


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.server.host, port=settings.server.port)
