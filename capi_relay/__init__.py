"""
Conversions API relay.

Builds form-funnel tracking events on the client side and relays them through
a single server endpoint to the Meta Conversions API, keeping the access token
off the client.
"""

__version__ = '1.0.0'

from .client import send_events
from .events import BrowserContext, build_event, build_test_event
from .form_tracking import FormTracker
from .hashing import hash_identifier
from .models import TrackingEvent

__all__ = [
    '__version__',
    'BrowserContext',
    'FormTracker',
    'TrackingEvent',
    'build_event',
    'build_test_event',
    'hash_identifier',
    'send_events',
]
