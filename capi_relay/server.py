"""
Conversions API relay server.

FastAPI application wiring the relay router, error handlers, CORS and the
shared HTTP client lifecycle.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import RelayConfig, load_config
from .errors import create_exception_handlers
from .http_client import get_http_client_manager, start_http_client, stop_http_client
from .relay_api import router as relay_router

logger = logging.getLogger(__name__)


def create_app(config: Optional[RelayConfig] = None) -> FastAPI:
    """Create the relay FastAPI application."""
    config = config or load_config()

    app = FastAPI(
        title='Conversions API Relay',
        description='Forwards browser tracking events to the Meta Conversions API',
        version=__version__,
    )

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=['POST'],
            allow_headers=['Content-Type'],
        )

    for exc_class, handler in create_exception_handlers().items():
        app.add_exception_handler(exc_class, handler)

    app.include_router(relay_router)

    @app.on_event('startup')
    async def startup_http_client():
        await start_http_client(timeout=config.upstream_timeout)

    @app.on_event('shutdown')
    async def shutdown_http_client():
        await stop_http_client()

    @app.get('/health')
    async def health() -> Dict[str, Any]:
        manager = get_http_client_manager()
        return {
            'status': 'ok',
            'version': __version__,
            'access_token_configured': bool(load_config().access_token),
            'http_client': manager.get_health() if manager else {'started': False},
        }

    if not config.access_token:
        logger.warning(
            'FACEBOOK_ACCESS_TOKEN is not set; relay requests will fail until it is configured'
        )

    return app
