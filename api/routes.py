from fastapi import FastAPI

from api.factory import (
    configure_middleware,
    configure_rate_limiting,
    create_base_app,
    create_lifespan_manager,
)
from api.handlers import register_error_handlers, register_routes
from services.dependencies import Services


def create_fastapi_app(config, services: Services) -> FastAPI:
    """Create and configure the FastAPI application"""

    app = create_base_app(config)

    app.router.lifespan_context = create_lifespan_manager(config, services)

    configure_middleware(app, config)

    limiter = configure_rate_limiting(app)

    register_error_handlers(app)

    register_routes(app, config, services, limiter)

    return app
