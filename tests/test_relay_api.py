"""
Tests for the Conversions API relay endpoint.

The app is driven through httpx's ASGITransport; the Graph API is replaced
with an httpx.MockTransport so every upstream request can be inspected.
"""

import json

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import capi_relay.relay_api as relay_api
from capi_relay.config import RelayConfig
from capi_relay.server import create_app


VALID_EVENT = {
    'event_name': 'FormStart',
    'event_time': 1700000000,
    'action_source': 'website',
    'user_data': {'fbp': 'fb.1.1'},
}


class FakeGraphAPI:
    """Records upstream requests and answers with a canned response."""

    def __init__(self):
        self.requests = []
        self.response = httpx.Response(
            200, json={'events_received': 1, 'messages': [], 'fbtrace_id': 'abc'}
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


@pytest.fixture
def graph_api():
    return FakeGraphAPI()


@pytest.fixture
def relay_config():
    return RelayConfig(access_token='test-token')


@pytest_asyncio.fixture
async def client(monkeypatch, graph_api, relay_config):
    app = create_app(relay_config)
    app.dependency_overrides[relay_api.get_relay_config] = lambda: relay_config

    upstream = httpx.AsyncClient(transport=httpx.MockTransport(graph_api))
    monkeypatch.setattr(relay_api, 'get_shared_client', lambda: upstream)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac
    await upstream.aclose()


class TestRelayValidation:

    @pytest.mark.asyncio
    async def test_empty_events(self, client, graph_api):
        resp = await client.post('/api/capi', json={'events': [], 'pixelId': '123'})
        assert resp.status_code == 400
        assert resp.json() == {'error': 'Events array is required'}
        assert graph_api.requests == []

    @pytest.mark.asyncio
    async def test_missing_events(self, client, graph_api):
        resp = await client.post('/api/capi', json={'pixelId': '123'})
        assert resp.status_code == 400
        assert resp.json() == {'error': 'Events array is required'}
        assert graph_api.requests == []

    @pytest.mark.asyncio
    async def test_events_not_a_list(self, client):
        resp = await client.post('/api/capi', json={'events': {'a': 1}, 'pixelId': '123'})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_pixel_id(self, client, graph_api):
        resp = await client.post('/api/capi', json={'events': [VALID_EVENT]})
        assert resp.status_code == 400
        assert resp.json() == {'error': 'Pixel ID is required'}
        assert graph_api.requests == []

    @pytest.mark.asyncio
    async def test_invalid_json_body(self, client):
        resp = await client.post(
            '/api/capi',
            content=b'{not json',
            headers={'Content-Type': 'application/json'},
        )
        assert resp.status_code == 400
        assert 'error' in resp.json()

    @pytest.mark.asyncio
    async def test_body_not_an_object(self, client):
        resp = await client.post('/api/capi', json=[VALID_EVENT])
        assert resp.status_code == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize('method', ['GET', 'PUT', 'DELETE', 'PATCH', 'TRACE'])
    async def test_other_methods_not_allowed(self, client, graph_api, method):
        resp = await client.request(method, '/api/capi')
        assert resp.status_code == 405
        assert resp.json() == {'error': 'Method not allowed'}
        assert graph_api.requests == []


class TestRelayConfiguration:

    @pytest.mark.asyncio
    async def test_missing_access_token(self, client, graph_api, relay_config):
        relay_config.access_token = None
        resp = await client.post('/api/capi', json={'events': [VALID_EVENT], 'pixelId': '123'})
        assert resp.status_code == 500
        assert resp.json() == {'error': 'Facebook Access Token not configured'}
        assert graph_api.requests == []

    @pytest.mark.asyncio
    async def test_input_errors_reported_before_missing_token(self, client, relay_config):
        relay_config.access_token = None
        resp = await client.post('/api/capi', json={'events': []})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_test_event_code_forwarded(self, client, graph_api, relay_config):
        relay_config.test_event_code = 'TEST12345'
        await client.post('/api/capi', json={'events': [VALID_EVENT], 'pixelId': '123'})
        body = json.loads(graph_api.requests[0].content)
        assert body['test_event_code'] == 'TEST12345'

    @pytest.mark.asyncio
    async def test_test_event_code_omitted_when_unset(self, client, graph_api):
        await client.post('/api/capi', json={'events': [VALID_EVENT], 'pixelId': '123'})
        body = json.loads(graph_api.requests[0].content)
        assert 'test_event_code' not in body


class TestRelayForwarding:

    @pytest.mark.asyncio
    async def test_success_envelope(self, client):
        resp = await client.post('/api/capi', json={'events': [VALID_EVENT], 'pixelId': '123'})
        assert resp.status_code == 200
        assert resp.json() == {'success': True, 'events_received': 1, 'fbtrace_id': 'abc'}

    @pytest.mark.asyncio
    async def test_upstream_request_shape(self, client, graph_api):
        events = [VALID_EVENT, {**VALID_EVENT, 'event_name': 'FormStepCompleted'}]
        await client.post('/api/capi', json={'events': events, 'pixelId': '480750607959393'})

        assert len(graph_api.requests) == 1
        upstream = graph_api.requests[0]
        assert upstream.method == 'POST'
        assert str(upstream.url) == 'https://graph.facebook.com/v19.0/480750607959393/events'
        assert upstream.headers['Authorization'] == 'Bearer test-token'
        assert json.loads(upstream.content) == {'data': events}

    @pytest.mark.asyncio
    async def test_configured_graph_api_version(self, client, graph_api, relay_config):
        relay_config.graph_api_version = 'v21.0'
        await client.post('/api/capi', json={'events': [VALID_EVENT], 'pixelId': '123'})
        assert graph_api.requests[0].url.path == '/v21.0/123/events'

    @pytest.mark.asyncio
    async def test_upstream_error_passthrough(self, client, graph_api):
        graph_api.response = httpx.Response(400, json={'error': 'bad param'})
        resp = await client.post('/api/capi', json={'events': [VALID_EVENT], 'pixelId': '123'})
        assert resp.status_code == 400
        assert resp.json() == {'error': {'error': 'bad param'}}

    @pytest.mark.asyncio
    async def test_upstream_auth_error_status_preserved(self, client, graph_api):
        upstream_body = {
            'error': {'message': 'Invalid OAuth access token.', 'type': 'OAuthException', 'code': 190}
        }
        graph_api.response = httpx.Response(401, json=upstream_body)
        resp = await client.post('/api/capi', json={'events': [VALID_EVENT], 'pixelId': '123'})
        assert resp.status_code == 401
        assert resp.json() == {'error': upstream_body}

    @pytest.mark.asyncio
    async def test_transport_failure(self, client, graph_api):
        graph_api.response = httpx.ConnectError('network unreachable')
        resp = await client.post('/api/capi', json={'events': [VALID_EVENT], 'pixelId': '123'})
        assert resp.status_code == 500
        assert resp.json() == {'error': 'Internal Server Error', 'details': 'network unreachable'}

    @pytest.mark.asyncio
    async def test_malformed_upstream_body(self, client, graph_api):
        graph_api.response = httpx.Response(200, text='<html>oops</html>')
        resp = await client.post('/api/capi', json={'events': [VALID_EVENT], 'pixelId': '123'})
        assert resp.status_code == 500
        body = resp.json()
        assert body['error'] == 'Internal Server Error'
        assert body['details']

    @pytest.mark.asyncio
    async def test_consecutive_requests_independent(self, client, graph_api):
        graph_api.response = httpx.Response(400, json={'error': 'bad param'})
        first = await client.post('/api/capi', json={'events': [VALID_EVENT], 'pixelId': '123'})
        graph_api.response = httpx.Response(200, json={'events_received': 1, 'fbtrace_id': 'xyz'})
        second = await client.post('/api/capi', json={'events': [VALID_EVENT], 'pixelId': '123'})
        assert first.status_code == 400
        assert second.status_code == 200
        assert second.json()['fbtrace_id'] == 'xyz'

    @pytest.mark.asyncio
    async def test_missing_upstream_fields_omitted(self, client, graph_api):
        graph_api.response = httpx.Response(200, json={'fbtrace_id': 'a'})
        resp = await client.post('/api/capi', json={'events': [VALID_EVENT], 'pixelId': '123'})
        assert resp.status_code == 200
        assert resp.json() == {'success': True, 'fbtrace_id': 'a'}

    @pytest.mark.asyncio
    async def test_upstream_values_reported_as_received(self, client, graph_api):
        graph_api.response = httpx.Response(200, json={'events_received': 1.0, 'fbtrace_id': 'a'})
        resp = await client.post('/api/capi', json={'events': [VALID_EVENT], 'pixelId': '123'})
        assert resp.status_code == 200
        assert resp.json()['events_received'] == 1.0

    @pytest.mark.asyncio
    async def test_unknown_path_keeps_default_404(self, client):
        resp = await client.get('/api/nope')
        assert resp.status_code == 404
        assert 'detail' in resp.json()


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client, monkeypatch):
        monkeypatch.setenv('FACEBOOK_ACCESS_TOKEN', 'token')
        resp = await client.get('/health')
        assert resp.status_code == 200
        body = resp.json()
        assert body['status'] == 'ok'
        assert body['access_token_configured'] is True
