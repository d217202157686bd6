from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from config.logger import get_logger
from services.dependencies import Services

logger = get_logger(__name__)


def configure_middleware(app: FastAPI, config) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )


def configure_rate_limiting(app: FastAPI) -> Limiter:
    limiter = Limiter(key_func=get_remote_address)
    app.state.limiter = limiter

    async def rate_limit_handler(request: Request, exc: Exception) -> Response:
        if isinstance(exc, RateLimitExceeded):
            return _rate_limit_exceeded_handler(request, exc)
        raise exc

    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    return limiter


def create_lifespan_manager(config, services: Services):
    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        # Startup
        for warning in config.validate_for_startup():
            logger.warning(warning)

        await services.reaper.start()
        logger.info(
            "Track finder ready",
            artifacts_dir=str(services.artifacts.root),
            recognizer_configured=config.recognition.configured,
        )

        yield

        # Shutdown
        await services.close()

    return lifespan


def create_base_app(config) -> FastAPI:
    return FastAPI(
        version="1.0.0",
        title="Media Track Finder API",
        description="API for identifying the music tracks playing in online videos",
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
    )
