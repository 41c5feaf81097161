"""
Meta Conversions API client.

Forwards pre-built server events to the Graph API ``/{pixel_id}/events``
endpoint. Events are sent as given; this client adds only the credential and
the optional test event code.

References:
- https://developers.facebook.com/docs/marketing-api/conversions-api/using-the-api
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from .errors import UpstreamAPIError

logger = logging.getLogger(__name__)


class ConversionsAPIClient:
    """
    Client for the Meta Conversions API.

    Example usage:
        client = ConversionsAPIClient(access_token="...")
        result = await client.send_events("480750607959393", [event])
        result["events_received"]
    """

    BASE_URL = 'https://graph.facebook.com'
    API_VERSION = 'v19.0'

    def __init__(
        self,
        access_token: str,
        test_event_code: Optional[str] = None,
        base_url: str = BASE_URL,
        api_version: str = API_VERSION,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.access_token = access_token
        self.test_event_code = test_event_code
        self.base_url = base_url.rstrip('/')
        self.api_version = api_version
        self.timeout = timeout
        self._http_client = http_client

    def events_url(self, pixel_id: str) -> str:
        return f'{self.base_url}/{self.api_version}/{pixel_id}/events'

    def _build_payload(self, events: List[Any]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'data': events}
        if self.test_event_code:
            payload['test_event_code'] = self.test_event_code
        return payload

    async def _post(self, url: str, payload: Dict[str, Any]) -> httpx.Response:
        headers = {
            'Authorization': f'Bearer {self.access_token}',
            'Content-Type': 'application/json',
        }
        kwargs: Dict[str, Any] = {'json': payload, 'headers': headers}
        if self.timeout is not None:
            kwargs['timeout'] = self.timeout

        if self._http_client is not None:
            return await self._http_client.post(url, **kwargs)
        async with httpx.AsyncClient() as client:
            return await client.post(url, **kwargs)

    async def send_events(
        self,
        pixel_id: str,
        events: List[Any],
    ) -> Dict[str, Any]:
        """
        Send a batch of events in a single request.

        Returns the decoded Graph API body on success.

        Raises:
            UpstreamAPIError: Graph API answered with a non-2xx status
            httpx.HTTPError: Transport failure
            ValueError: Response body is not valid JSON
        """
        url = self.events_url(pixel_id)
        response = await self._post(url, self._build_payload(events))
        body = response.json()

        if not response.is_success:
            logger.error(
                'Conversions API error for pixel %s: %d %s',
                pixel_id, response.status_code, body,
            )
            raise UpstreamAPIError(response.status_code, body)

        logger.info(
            'Forwarded %d events to pixel %s (events_received=%s, fbtrace_id=%s)',
            len(events), pixel_id,
            body.get('events_received'), body.get('fbtrace_id'),
        )
        return body
