"""
Error handling for the Conversions API relay.

Every error the relay endpoint reports is a ``RelayError`` carrying the HTTP
status to answer with. The JSON bodies follow the relay wire protocol:

- 400: ``{"error": "<message>"}``        caller input (events, pixelId, body)
- 405: ``{"error": "Method not allowed"}``
- 500: ``{"error": "<message>"}``        deployment error (missing credential)
- <upstream status>: ``{"error": <upstream body>}``  Graph API passthrough
- 500: ``{"error": "Internal Server Error", "details": "<message>"}``
"""

import logging
from typing import Any, Callable, Dict, Type

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """
    Base exception class for relay errors.

    Subclasses define:
    - http_status: HTTP status code returned to the caller
    - message: Default error message
    """

    http_status: int = 500
    message: str = 'Relay error'

    def __init__(self, message: str | None = None):
        self._message = message or self.__class__.message
        super().__init__(self._message)

    @property
    def error_message(self) -> str:
        return self._message

    def to_content(self) -> Dict[str, Any]:
        return {'error': self._message}

    def to_http_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.http_status, content=self.to_content())


class InvalidRelayRequestError(RelayError):
    """The caller sent a request the relay cannot forward."""

    http_status = 400
    message = 'Invalid request'


class RelayMethodNotAllowedError(RelayError):
    http_status = 405
    message = 'Method not allowed'


class RelayMisconfiguredError(RelayError):
    """A required server-side setting is missing."""

    http_status = 500
    message = 'Relay is not configured'


class UpstreamAPIError(RelayError):
    """
    The Graph API answered with a non-success status.

    The upstream status and body are passed back to the caller unchanged.
    """

    message = 'Upstream API error'

    def __init__(self, status_code: int, body: Any):
        self.http_status = status_code
        self.body = body
        super().__init__(f'Upstream API returned {status_code}')

    def to_content(self) -> Dict[str, Any]:
        return {'error': self.body}


def internal_error_response(exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={'error': 'Internal Server Error', 'details': str(exc)},
    )


def create_exception_handlers() -> Dict[Type[Exception], Callable]:
    """
    Create FastAPI exception handlers for relay errors.

    Usage:
        handlers = create_exception_handlers()
        for exc_class, handler in handlers.items():
            app.add_exception_handler(exc_class, handler)
    """

    async def handle_relay_error(request: Request, exc: RelayError) -> Response:
        logger.warning(f'Relay error: [{exc.http_status}] {exc.error_message}')
        return exc.to_http_response()

    async def handle_http_exception(
        request: Request, exc: StarletteHTTPException
    ) -> Response:
        if exc.status_code == 405:
            error = RelayMethodNotAllowedError()
            return JSONResponse(
                status_code=error.http_status,
                content=error.to_content(),
                headers=exc.headers,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={'detail': exc.detail},
            headers=exc.headers,
        )

    async def handle_generic_exception(
        request: Request, exc: Exception
    ) -> Response:
        logger.error(
            f'Unhandled exception: {type(exc).__name__}: {exc}', exc_info=True
        )
        return internal_error_response(exc)

    return {
        RelayError: handle_relay_error,
        StarletteHTTPException: handle_http_exception,
        Exception: handle_generic_exception,
    }
