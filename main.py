import uvicorn
from fastapi import FastAPI

from api.routes import create_fastapi_app
from config.config import Config
from config.logger import setup_logging
from services.dependencies import build_services


def create_app(config: Config = None) -> FastAPI:
    config = config or Config()
    setup_logging(debug=config.server.debug)

    services = build_services(config)
    return create_fastapi_app(config, services)


app = create_app()


if __name__ == "__main__":
    config = Config()

    uvicorn.run(
        "main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.debug,
        log_level="info",
        access_log=True,
    )
