import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dqa_setup.infrastructure import DHIS2MetadataClient, configure_metadata_client
from dqa_setup.routes import health, mappings, provisioning
from dqa_setup.workers.provisioning import get_provisioning_worker

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


def _configure_metadata_backend() -> bool:
    """Install the DHIS2 client when credentials are set; return whether it was."""
    base_url = os.getenv("DHIS2_BASE_URL")
    username = os.getenv("DHIS2_USERNAME")
    password = os.getenv("DHIS2_PASSWORD")
    if not (base_url and username and password):
        logger.info("DHIS2 connection not configured; using the in-memory metadata store")
        return False

    timeout = float(os.getenv("DHIS2_TIMEOUT") or 30)
    configure_metadata_client(DHIS2MetadataClient(base_url, username, password, timeout=timeout))
    logger.info("Provisioning against DHIS2 at %s", base_url)
    return True


def _cors_origins() -> list[str]:
    origins = [origin.strip() for origin in os.getenv("API_CORS_ORIGINS", "").split(",") if origin.strip()]
    return origins or list(DEFAULT_CORS_ORIGINS)


def create_app() -> FastAPI:
    app = FastAPI(title="DQA Assessment Setup API", version="0.1.0")

    online = _configure_metadata_backend()
    default_combo = os.getenv("DHIS2_DEFAULT_CATEGORY_COMBO")
    if default_combo:
        get_provisioning_worker().configure(default_category_combo=default_combo)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for router in (mappings.router, provisioning.router, health.router):
        app.include_router(router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        return JSONResponse(
            {
                "message": "DQA Assessment Setup API",
                "docs": "/docs",
                "health": "/api/health",
                "offline": not online,
            }
        )

    return app


app = create_app()
