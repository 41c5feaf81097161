"""
Conversions API relay endpoint.

Keeps the Graph API access token on the server: the browser posts pre-built
events here and the relay forwards them with the credential attached.

Endpoints:
    POST /api/capi  - Forward {events, pixelId} to the Graph API

Every other method on /api/capi answers 405 (see errors.create_exception_handlers).
"""

import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from .config import RelayConfig, load_config
from .conversions import ConversionsAPIClient
from .errors import (
    InvalidRelayRequestError,
    RelayError,
    RelayMisconfiguredError,
    internal_error_response,
)
from .http_client import get_shared_client
from .models import RelayRequest, RelaySuccessResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=['Conversions API'])

RELAY_PATH = '/api/capi'


def get_relay_config() -> RelayConfig:
    """Configuration is re-read per request so credential rotation needs no restart."""
    return load_config()


def get_conversions_client(
    config: RelayConfig = Depends(get_relay_config),
) -> ConversionsAPIClient:
    if not config.access_token:
        raise RelayMisconfiguredError('Facebook Access Token not configured')
    return ConversionsAPIClient(
        access_token=config.access_token,
        test_event_code=config.test_event_code,
        base_url=config.graph_api_base,
        api_version=config.graph_api_version,
        timeout=config.upstream_timeout,
        http_client=get_shared_client(),
    )


async def parse_relay_request(request: Request) -> RelayRequest:
    """Validate the relay body, reporting problems as 400s."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidRelayRequestError('Invalid JSON body')

    if not isinstance(body, dict):
        raise InvalidRelayRequestError('Events array is required')

    events = body.get('events')
    if not events or not isinstance(events, list):
        raise InvalidRelayRequestError('Events array is required')

    pixel_id = body.get('pixelId')
    if not pixel_id:
        raise InvalidRelayRequestError('Pixel ID is required')

    return RelayRequest(events=events, pixelId=str(pixel_id))


@router.post(RELAY_PATH)
async def relay_events(
    relay_request: RelayRequest = Depends(parse_relay_request),
    client: ConversionsAPIClient = Depends(get_conversions_client),
) -> Dict[str, Any]:
    """Forward a batch of events to the Conversions API."""
    try:
        result = await client.send_events(relay_request.pixelId, relay_request.events)
        return RelaySuccessResponse(
            events_received=result.get('events_received'),
            fbtrace_id=result.get('fbtrace_id'),
        ).model_dump(exclude_none=True)
    except RelayError:
        raise
    except Exception as e:
        logger.error(f'Conversions API relay error: {e}', exc_info=True)
        return internal_error_response(e)

