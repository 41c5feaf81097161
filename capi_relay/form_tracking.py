"""
Form funnel tracking.

One helper per funnel moment of a multi-step lead form. Each builds a single
event, sends it through the relay and returns the send result. Failures are
logged and returned, never raised, so form submission proceeds regardless.
"""

import logging
from typing import Any, Callable, Dict, Mapping, Optional

import httpx

from .client import send_events
from .events import BrowserContext, build_event, build_test_event
from .models import TrackingEvent

logger = logging.getLogger(__name__)

DEFAULT_TOTAL_STEPS = 3


class FormTracker:
    """
    Sends Conversions API events for a multi-step form.

    Example usage:
        tracker = FormTracker(BrowserContext.from_headers(page_url, headers))
        await tracker.track_start({'ip': client_ip})
        await tracker.track_step_completed(1, step_data={'time_spent': 12})
        await tracker.track_submitted({'email': 'user@example.com'})
    """

    def __init__(
        self,
        context: BrowserContext,
        pixel_id: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        total_steps: int = DEFAULT_TOTAL_STEPS,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.context = context
        self.pixel_id = pixel_id
        self.endpoint_url = endpoint_url
        self.total_steps = total_steps
        self.http_client = http_client

    def _progress(self, step: Any) -> float:
        try:
            return step / self.total_steps * 100
        except (TypeError, ZeroDivisionError):
            return 0

    def _step_data(self, step: Any, **defaults: Any) -> Dict[str, Any]:
        return {
            'step': step,
            'step_name': f'step_{step}',
            'progress': self._progress(step),
            **defaults,
        }

    async def _track(
        self,
        label: str,
        build: Callable[[], TrackingEvent],
    ) -> Dict[str, Any]:
        """Build one event and send it. Any failure comes back as a result."""
        try:
            event = build()
        except Exception as e:
            logger.error('%s event could not be built: %s', label, e)
            return {'success': False, 'error': str(e)}

        logger.debug('%s: %s', label, event.to_payload())
        result = await send_events(
            [event],
            self.pixel_id,
            context=self.context,
            endpoint_url=self.endpoint_url,
            http_client=self.http_client,
        )
        if result['success']:
            logger.info('%s event sent', label)
        else:
            logger.error('%s event failed: %s', label, result.get('error'))
        return result

    async def track_start(
        self,
        form_data: Optional[Mapping[str, Any]] = None,
        step_data: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """User began the form (first step)."""

        def build() -> TrackingEvent:
            data = {
                'step': 1,
                'step_name': 'step_1',
                'progress': 33,
                'form_entry_point': 'landing_page',
                **(step_data or {}),
            }
            return build_event('FormStart', form_data, data, self.context)

        return await self._track('Form Start', build)

    async def track_step_started(
        self,
        step: int,
        form_data: Optional[Mapping[str, Any]] = None,
        step_data: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        def build() -> TrackingEvent:
            data = {**self._step_data(step), **(step_data or {})}
            return build_event('FormStepStarted', form_data, data, self.context)

        return await self._track(f'Form Step {step} Started', build)

    async def track_step_completed(
        self,
        step: int,
        form_data: Optional[Mapping[str, Any]] = None,
        step_data: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        def build() -> TrackingEvent:
            data = {**self._step_data(step), **(step_data or {})}
            return build_event('FormStepCompleted', form_data, data, self.context)

        return await self._track(f'Form Step {step} Completed', build)

    async def track_abandoned(
        self,
        last_step: int,
        form_data: Optional[Mapping[str, Any]] = None,
        abandonment_data: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """User left the form at ``last_step``."""

        def build() -> TrackingEvent:
            extra = dict(abandonment_data or {})
            data = self._step_data(
                last_step,
                abandonment_reason=extra.pop('reason', None) or 'user_left',
                time_on_form=extra.pop('time_on_form', None) or 0,
            )
            data.update(extra)
            return build_event('FormAbandoned', form_data, data, self.context)

        return await self._track(f'Form Abandoned at Step {last_step}', build)

    async def track_submitted(
        self,
        form_data: Optional[Mapping[str, Any]] = None,
        submission_data: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        def build() -> TrackingEvent:
            data = self._step_data(self.total_steps, submission_successful=True)
            data['progress'] = 100
            data.update(submission_data or {})
            return build_event('FormSubmitted', form_data, data, self.context)

        return await self._track('Form Submitted', build)

    async def track_complete(
        self,
        form_data: Optional[Mapping[str, Any]] = None,
        completion_data: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """User finished the last step."""

        def build() -> TrackingEvent:
            extra = dict(completion_data or {})
            data = self._step_data(
                self.total_steps,
                form_completion_time=extra.pop('completion_time', None) or 0,
                form_success=True,
            )
            data['progress'] = 100
            data.update(extra)
            return build_event('FormComplete', form_data, data, self.context)

        return await self._track('Form Complete', build)

    async def send_test_event(
        self,
        form_data: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Send a ``FormStep1Started`` event flagged ``test_event``."""
        return await self._track(
            'Test CAPI',
            lambda: build_test_event('FormStep1Started', form_data, self.context),
        )
