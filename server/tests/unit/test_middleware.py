"""Tests for request id propagation and call logging."""

import pytest

from darshan.core.middleware import LoggingMiddleware


@pytest.mark.parametrize(
    "path, operation",
    [
        ("/v1/queue/check-in", "queue.check-in"),
        ("/v1/payment/upi/update", "payment.upi.update"),
        ("/docs", "docs"),
        ("/", "root"),
    ],
)
def test_operation_name(path, operation):
    assert LoggingMiddleware.operation_name(path) == operation


@pytest.mark.asyncio
async def test_request_id_is_echoed(test_client):
    response = await test_client.post("/v1/health/ping", json={}, headers={"X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"


@pytest.mark.asyncio
async def test_request_id_is_generated(test_client):
    response = await test_client.post("/v1/health/ping", json={})
    assert len(response.headers["X-Request-ID"]) == 36
