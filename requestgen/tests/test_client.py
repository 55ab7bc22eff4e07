"""Tests for the runtime client support used by generated code."""

import enum
from datetime import date, datetime, timedelta, timezone

import httpx
import pytest

from requestgen.client import (
    APIClient,
    AuthenticatedAPIClient,
    BaseAPIClient,
    DynamicPathProvider,
    Response,
    ResponseValidator,
    cast_payload,
    encode_query,
    format_kitchen,
    format_query_value,
    format_rfc3339,
)
from requestgen.exceptions import APIError


class Color(enum.Enum):
    RED = 'red'


class TestFormatting:
    """Test query value formatting."""

    @pytest.mark.parametrize(
        'value,expected',
        [
            ('abc', 'abc'),
            (5, '5'),
            (True, 'true'),
            (False, 'false'),
            (Color.RED, 'red'),
            (date(2024, 1, 2), '2024-01-02'),
            (datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc), '2024-01-02T03:04:05+00:00'),
        ],
    )
    def test_format_query_value(self, value, expected):
        assert format_query_value(value) == expected

    def test_encode_query(self):
        query = encode_query({'symbol': 'BTC', 'page': 2, 'ids': [1, 2]}, ('ids',))
        assert query == {'symbol': 'BTC', 'page': '2', 'ids[]': ['1', '2']}

    def test_cast_payload(self):
        assert cast_payload(None) is None
        assert cast_payload(b'raw') == b'raw'
        assert cast_payload('text') == b'text'
        assert cast_payload({'a': Color.RED}) == b'{"a":"red"}'

    @pytest.mark.parametrize(
        'value,expected',
        [
            (datetime(2024, 1, 2, 15, 4, 5, tzinfo=timezone.utc), '2024-01-02T15:04:05Z'),
            (
                datetime(2024, 1, 2, 15, 4, 5, 999, tzinfo=timezone(timedelta(hours=-7))),
                '2024-01-02T15:04:05-07:00',
            ),
        ],
    )
    def test_format_rfc3339(self, value, expected):
        assert format_rfc3339(value) == expected

    def test_format_rfc3339_naive_is_local_time(self):
        value = datetime(2024, 1, 2, 15, 4, 5)
        formatted = format_rfc3339(value)
        parsed = datetime.fromisoformat(formatted)
        assert parsed.tzinfo is not None
        assert parsed == value.astimezone()

    @pytest.mark.parametrize(
        'hour,expected',
        [(0, '12:04AM'), (9, '9:04AM'), (12, '12:04PM'), (15, '3:04PM')],
    )
    def test_format_kitchen(self, hour, expected):
        assert format_kitchen(datetime(2024, 1, 2, hour, 4)) == expected


class TestProtocols:
    """Test the runtime checkable capability protocols."""

    def test_base_client_is_public_only(self):
        client = BaseAPIClient()
        assert isinstance(client, APIClient)
        assert not isinstance(client, AuthenticatedAPIClient)

    def test_authenticated_client(self):
        class Signing(BaseAPIClient):
            def new_authenticated_request(self, method, ref_url, params, payload):
                return self.new_request(method, ref_url, params, payload)

        assert isinstance(Signing(), AuthenticatedAPIClient)

    def test_dynamic_path_and_validator(self):
        class Request:
            def get_dynamic_path(self):
                return '/'

        class Reply:
            def validate_response(self):
                pass

        assert isinstance(Request(), DynamicPathProvider)
        assert isinstance(Reply(), ResponseValidator)
        assert not isinstance({}, ResponseValidator)


class TestBaseAPIClient:
    """Test the httpx based client."""

    @pytest.fixture
    def sent(self):
        return []

    @pytest.fixture
    def client(self, sent):
        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            if request.url.path == '/fail':
                return httpx.Response(400, content=b'{"error":"bad"}')
            return httpx.Response(200, json={'ok': True}, headers={'X-Id': '1'})

        http_client = httpx.Client(transport=httpx.MockTransport(handler))
        with BaseAPIClient('https://api.example.com/', http_client=http_client) as client:
            yield client

    def test_new_request(self, client):
        request = client.new_request('POST', '/v1/orders', {'a': '1'}, {'symbol': 'BTC'})
        assert request.method == 'POST'
        assert str(request.url) == 'https://api.example.com/v1/orders?a=1'
        assert request.headers['Content-Type'] == 'application/json'
        assert request.content == b'{"symbol":"BTC"}'

    def test_new_request_without_payload(self, client):
        request = client.new_request('GET', '/v1/orders', {}, None)
        assert str(request.url) == 'https://api.example.com/v1/orders'
        assert 'Content-Type' not in request.headers

    def test_send_request(self, client, sent):
        response = client.send_request(client.new_request('GET', '/v1/ping', None, None))
        assert isinstance(response, Response)
        assert response.status_code == 200
        assert response.headers['X-Id'] == '1'
        assert response.decode_json() == {'ok': True}
        assert not response.is_error
        assert len(sent) == 1

    def test_error_status(self, client):
        with pytest.raises(APIError) as exc_info:
            client.send_request(client.new_request('GET', '/fail', None, None))
        assert exc_info.value.status_code == 400
        assert exc_info.value.body == b'{"error":"bad"}'

    def test_response_repr(self):
        response = Response(204, httpx.Headers(), b'')
        assert repr(response) == 'Response(status_code=204, body=0 bytes)'
