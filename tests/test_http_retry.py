try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import httpx
import pytest

from social_publisher.core.exceptions import SocialMediaException
from social_publisher.utils.http import RetryConfig, extract_error_message, request_with_retry


class FlakyEndpoint:
    """Fails a fixed number of times before answering 200."""

    def __init__(self, failures: int, *, status: int = 500) -> None:
        self.failures = failures
        self.status = status
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.calls <= self.failures:
            return httpx.Response(self.status, json={"error": {"message": "temporarily down"}})
        return httpx.Response(200, json={"ok": True})


@pytest.mark.anyio
async def test_retry_succeeds_after_n_minus_one_failures() -> None:
    endpoint = FlakyEndpoint(failures=2)
    config = RetryConfig(attempts=3, backoff_seconds=0)

    async with httpx.AsyncClient(transport=httpx.MockTransport(endpoint)) as client:
        response = await request_with_retry(
            client.request, "GET", "https://api.example.com/ping", retry_config=config
        )

    assert response.status_code == 200
    assert endpoint.calls == 3


@pytest.mark.anyio
async def test_retry_raises_after_n_failures() -> None:
    endpoint = FlakyEndpoint(failures=3, status=503)
    config = RetryConfig(attempts=3, backoff_seconds=0)

    async with httpx.AsyncClient(transport=httpx.MockTransport(endpoint)) as client:
        with pytest.raises(SocialMediaException) as excinfo:
            await request_with_retry(
                client.request, "GET", "https://api.example.com/ping", retry_config=config
            )

    assert endpoint.calls == 3
    assert excinfo.value.message == "API request failed: temporarily down"
    assert excinfo.value.status_code == 503


@pytest.mark.anyio
async def test_transport_errors_are_retried() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        response = await request_with_retry(
            client.request,
            "POST",
            "https://api.example.com/items",
            retry_config=RetryConfig(attempts=2, backoff_seconds=0),
        )

    assert response.status_code == 200
    assert len(calls) == 2


def test_backoff_doubles_per_attempt() -> None:
    config = RetryConfig(attempts=4, backoff_seconds=1.5)

    assert [config.delay_for(n) for n in (1, 2, 3)] == [1.5, 3.0, 6.0]


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"error": {"message": "bad token"}}, "bad token"),
        ({"message": "rate limited"}, "rate limited"),
        ({"error": "invalid_grant"}, "invalid_grant"),
        ({"detail": "not allowed"}, "not allowed"),
    ],
)
def test_extract_error_message_prefers_specific_fields(body, expected) -> None:
    response = httpx.Response(400, json=body)

    assert extract_error_message(response) == expected


def test_extract_error_message_falls_back_to_status_and_body() -> None:
    response = httpx.Response(502, text="Bad Gateway")

    assert extract_error_message(response) == "HTTP 502: Bad Gateway"
