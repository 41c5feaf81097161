"""
Client side of the relay: posts tracking events to ``/api/capi``.

Tracking must never block the business action it describes, so
``send_events`` always returns a result dict and never raises.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union
from urllib.parse import urljoin, urlparse

import httpx

from .config import load_config
from .events import BrowserContext
from .models import TrackingEvent

logger = logging.getLogger(__name__)

LOCAL_HOSTS = {'localhost', '127.0.0.1'}
RELAY_PATH = '/api/capi'


def is_local_host(url: Optional[str]) -> bool:
    """True when the page is served from a local development host."""
    if not url:
        return False
    return urlparse(url).hostname in LOCAL_HOSTS


def resolve_endpoint(context: BrowserContext, endpoint_url: Optional[str] = None) -> str:
    """Relay URL: explicit argument, then configuration, then the page's own origin."""
    endpoint = endpoint_url or load_config().relay_endpoint
    if endpoint:
        return endpoint
    if not context.url:
        raise ValueError('No relay endpoint configured and no page URL to derive it from')
    return urljoin(context.url, RELAY_PATH)


def _serialize(events: Sequence[Union[TrackingEvent, Dict[str, Any]]]) -> List[Dict[str, Any]]:
    return [
        event.to_payload() if isinstance(event, TrackingEvent) else event
        for event in events
    ]


async def send_events(
    events: Sequence[Union[TrackingEvent, Dict[str, Any]]],
    pixel_id: Optional[str] = None,
    *,
    context: Optional[BrowserContext] = None,
    endpoint_url: Optional[str] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    """
    Send events to the Conversions API through the relay endpoint.

    Args:
        events: Events to forward, as ``TrackingEvent`` or prepared dicts
        pixel_id: Destination pixel; defaults to the configured one
        context: Page context; a local-development page URL skips sending
        endpoint_url: Relay URL override
        http_client: Client to send with; a one-shot client otherwise

    Returns:
        ``{'success': True, 'data': ...}`` on success,
        ``{'success': True, 'message': ...}`` when skipped locally,
        ``{'success': False, 'error': ...}`` on any failure
    """
    context = context or BrowserContext()

    if is_local_host(context.url):
        logger.warning('CAPI events are skipped on localhost.')
        return {'success': True, 'message': 'CAPI skipped on localhost'}

    try:
        url = resolve_endpoint(context, endpoint_url)
        payload = {
            'events': _serialize(events),
            'pixelId': pixel_id or load_config().pixel_id,
        }

        if http_client is not None:
            response = await http_client.post(url, json=payload)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.post(url, json=payload)

        response_data = response.json()

        if not response.is_success:
            logger.error(f'CAPI relay request error: {response_data}')
            return {'success': False, 'error': response_data}

        logger.info(f'CAPI success: {response_data}')
        return {'success': True, 'data': response_data}

    except Exception as e:
        logger.error(f'CAPI request error: {e}')
        return {'success': False, 'error': str(e)}
