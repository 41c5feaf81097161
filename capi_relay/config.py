"""
Configuration management for the Conversions API relay.
"""

import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

# Load environment variables from .env file
load_dotenv()

DEFAULT_PIXEL_ID = '480750607959393'
DEFAULT_GRAPH_API_BASE = 'https://graph.facebook.com'
DEFAULT_GRAPH_API_VERSION = 'v19.0'


class RelayConfig(BaseModel):
    """Configuration for the relay server and the client helpers."""

    host: str = '0.0.0.0'
    port: int = 8000
    log_level: str = 'INFO'

    # Graph API credential. Absence is a deployment error, reported per request.
    access_token: Optional[str] = None
    test_event_code: Optional[str] = None
    graph_api_base: str = DEFAULT_GRAPH_API_BASE
    graph_api_version: str = DEFAULT_GRAPH_API_VERSION
    upstream_timeout: float = 30.0

    # Client side
    pixel_id: str = DEFAULT_PIXEL_ID
    relay_endpoint: Optional[str] = None

    cors_origins: List[str] = []


def load_config() -> RelayConfig:
    """Load configuration from environment variables."""
    return RelayConfig(
        host=os.getenv('CAPI_HOST', '0.0.0.0'),
        port=int(os.getenv('CAPI_PORT', '8000')),
        log_level=os.getenv('CAPI_LOG_LEVEL', 'INFO'),
        access_token=os.getenv('FACEBOOK_ACCESS_TOKEN') or None,
        test_event_code=os.getenv('FACEBOOK_TEST_EVENT_CODE') or None,
        graph_api_base=os.getenv('FACEBOOK_GRAPH_API_BASE', DEFAULT_GRAPH_API_BASE),
        graph_api_version=os.getenv(
            'FACEBOOK_GRAPH_API_VERSION', DEFAULT_GRAPH_API_VERSION
        ),
        upstream_timeout=float(os.getenv('CAPI_UPSTREAM_TIMEOUT_SECONDS', '30')),
        pixel_id=os.getenv('FACEBOOK_PIXEL_ID') or DEFAULT_PIXEL_ID,
        relay_endpoint=os.getenv('CAPI_RELAY_ENDPOINT') or None,
        cors_origins=_parse_origins(os.getenv('CAPI_CORS_ORIGINS')),
    )


def _parse_origins(origins_str: Optional[str]) -> List[str]:
    """Parse a comma separated list of allowed CORS origins."""
    if not origins_str:
        return []
    return [origin.strip() for origin in origins_str.split(',') if origin.strip()]
