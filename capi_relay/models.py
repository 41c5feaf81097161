"""
Conversions API data models.

Events are serialized with ``exclude_none`` so that unset identifiers and
custom fields never reach the Graph API as ``null``.
"""

import time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UserData(BaseModel):
    """Identity fields used by the destination for matching."""

    client_ip_address: Optional[str] = None
    client_user_agent: Optional[str] = None
    fbc: Optional[str] = Field(None, description='Click ID cookie (_fbc)')
    fbp: Optional[str] = Field(None, description='Browser ID cookie (_fbp)')
    em: Optional[str] = Field(None, description='SHA-256 of normalized email')
    ph: Optional[str] = Field(None, description='SHA-256 of normalized phone')


class CustomData(BaseModel):
    """Funnel step details plus free-form extension keys."""

    model_config = ConfigDict(extra='allow')

    # Caller values are passed through to the wire as given.
    form_type: Any = None
    form_step: Any = None
    step_name: Any = None
    time_spent: Any = None
    form_progress: Any = None


class TrackingEvent(BaseModel):
    """A single Conversions API server event."""

    event_name: str
    event_time: int = Field(default_factory=lambda: int(time.time()))
    action_source: str = 'website'
    event_source_url: Optional[str] = None
    user_data: UserData = Field(default_factory=UserData)
    custom_data: CustomData = Field(default_factory=CustomData)

    def to_payload(self) -> Dict[str, Any]:
        """Wire representation with unset fields dropped."""
        return self.model_dump(exclude_none=True)


class RelayRequest(BaseModel):
    """Body accepted by ``POST /api/capi``."""

    events: List[Any]
    pixelId: str


class RelaySuccessResponse(BaseModel):
    success: bool = True
    # Upstream values are reported as received.
    events_received: Any = None
    fbtrace_id: Any = None
