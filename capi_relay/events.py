"""
Tracking event construction.

Builds Conversions API events from form state, first-party cookies and page
context. The page context is an explicit ``BrowserContext`` value; build one
directly or from an incoming request's URL and headers.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .hashing import hash_identifier
from .models import CustomData, TrackingEvent, UserData

CLICK_ID_COOKIE = '_fbc'
BROWSER_ID_COOKIE = '_fbp'

DEFAULT_FORM_TYPE = 'book_a_call'

# step_data keys consumed by build_event; everything else is an extension.
_STEP_KEYS = {'step', 'step_name', 'time_spent', 'progress', 'custom_data'}


def get_cookie(cookie_header: Optional[str], name: str) -> Optional[str]:
    """Return the value of ``name`` from a raw ``Cookie`` header, or None."""
    if not cookie_header:
        return None
    for part in cookie_header.split(';'):
        key, sep, value = part.strip().partition('=')
        if sep and key == name:
            return value
    return None


@dataclass
class BrowserContext:
    """Page URL, user agent and cookie jar an event is built from."""

    url: Optional[str] = None
    user_agent: Optional[str] = None
    cookies: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_headers(cls, url: Optional[str], headers: Mapping[str, str]) -> 'BrowserContext':
        lowered = {k.lower(): v for k, v in headers.items()}
        cookie_header = lowered.get('cookie')
        cookies = {}
        for name in (CLICK_ID_COOKIE, BROWSER_ID_COOKIE):
            value = get_cookie(cookie_header, name)
            if value:
                cookies[name] = value
        return cls(url=url, user_agent=lowered.get('user-agent'), cookies=cookies)

    def cookie(self, name: str) -> Optional[str]:
        return self.cookies.get(name) or None


def build_user_data(
    form_data: Optional[Mapping[str, Any]],
    context: BrowserContext,
) -> UserData:
    """Identity fields from form data and the browser context."""
    form_data = form_data or {}
    email_hash = form_data.get('hashed_email') or hash_identifier(form_data.get('email'))
    phone_hash = form_data.get('hashed_phone') or hash_identifier(form_data.get('phone'))
    return UserData(
        client_ip_address=form_data.get('ip') or None,
        client_user_agent=context.user_agent or None,
        fbc=context.cookie(CLICK_ID_COOKIE),
        fbp=context.cookie(BROWSER_ID_COOKIE),
        em=email_hash or None,
        ph=phone_hash or None,
    )


def build_event(
    event_name: str,
    form_data: Optional[Mapping[str, Any]] = None,
    step_data: Optional[Mapping[str, Any]] = None,
    context: Optional[BrowserContext] = None,
) -> TrackingEvent:
    """
    Create a Conversions API event for form tracking.

    Args:
        event_name: Action name, e.g. ``FormStart`` or ``FormStepCompleted``
        form_data: ``ip``, ``hashed_email``/``hashed_phone`` (or raw
            ``email``/``phone``, hashed here)
        step_data: ``step``, ``step_name``, ``time_spent``, ``progress`` and a
            ``custom_data`` mapping. Any other key is an extension field.
            Extensions are merged last and win over the defaults.
        context: Page URL, user agent and cookies

    Returns:
        The event, ready for ``to_payload()``
    """
    context = context or BrowserContext()
    step_data = step_data or {}

    custom: Dict[str, Any] = {
        'form_type': DEFAULT_FORM_TYPE,
        'form_step': step_data.get('step') or 1,
        'step_name': step_data.get('step_name') or 'step_1',
        'time_spent': step_data.get('time_spent') or 0,
        'form_progress': step_data.get('progress') or 0,
    }
    custom.update({k: v for k, v in step_data.items() if k not in _STEP_KEYS})
    custom.update(step_data.get('custom_data') or {})

    return TrackingEvent(
        event_name=event_name,
        event_source_url=context.url or None,
        user_data=build_user_data(form_data, context),
        custom_data=CustomData.model_validate(
            {str(k): v for k, v in custom.items() if v is not None}
        ),
    )


def build_test_event(
    event_name: str,
    form_data: Optional[Mapping[str, Any]] = None,
    context: Optional[BrowserContext] = None,
) -> TrackingEvent:
    """Create a minimal event flagged as a test, for checking the pipeline."""
    context = context or BrowserContext()
    return TrackingEvent(
        event_name=event_name,
        event_source_url=context.url or None,
        user_data=build_user_data(form_data, context),
        custom_data=CustomData(
            form_step=1,
            form_type=DEFAULT_FORM_TYPE,
            test_event=True,
        ),
    )
