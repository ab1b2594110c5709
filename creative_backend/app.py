import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from creative_backend.application import get_project_service
from creative_backend.core.config import ServiceConfig
from creative_backend.infrastructure import AIGatewayClient, LocalObjectStorage, configure_ai_client
from creative_backend.routes import images, projects

logger = logging.getLogger(__name__)

_LOGGING_CONFIGURED = False


def configure_logging(level: str | None = None) -> None:
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return
    logging.basicConfig(
        level=(level or os.getenv("LOG_LEVEL") or "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _LOGGING_CONFIGURED = True


def create_app(config: ServiceConfig | None = None) -> FastAPI:
    configure_logging()
    app = FastAPI(title="Creative Brief Overlay API", version="0.1.0")

    config = config or ServiceConfig.from_env()
    if config.is_configured:
        configure_ai_client(AIGatewayClient(config))
    else:
        logger.warning("AI_GATEWAY_API_KEY not configured; processing requests will fail")

    get_project_service().configure(storage=LocalObjectStorage(), config=config)
    if not os.getenv("STORAGE_PUBLIC_URL"):
        logger.info("STORAGE_PUBLIC_URL not set; stored images are sent to the AI gateway inline")

    origins_env = os.getenv("API_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
    if not origins:
        origins = ["http://localhost:3000", "http://127.0.0.1:3000"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(projects.router, prefix="/api")
    app.include_router(images.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Creative Brief Overlay API",
                "docs": "/docs",
                "health": "/api/projects",
            }
        )

    return app


app = create_app()
