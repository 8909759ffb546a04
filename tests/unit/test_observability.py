"""Unit tests for request tracing and error bodies."""

import logging

import pytest
from libs.common.logging import (
    RequestContextFilter,
    clear_request_context,
    set_request_context,
)
from libs.common.middleware import logging_level_for


@pytest.mark.unit
@pytest.mark.parametrize(
    "status_code,level",
    [(200, logging.INFO), (204, logging.INFO), (404, logging.WARNING), (500, logging.ERROR)],
)
def test_logging_level_for(status_code, level):
    assert logging_level_for(status_code) == level


@pytest.mark.unit
def test_request_context_is_attached_to_records():
    request_id = set_request_context(path="/loyalty/redeem", method="POST", employee_id="emp-7")
    try:
        record = logging.LogRecord("test", logging.INFO, __file__, 1, "msg", None, None)
        RequestContextFilter().filter(record)
    finally:
        clear_request_context()

    assert record.request_id == request_id
    assert record.path == "/loyalty/redeem"
    assert record.employee_id == "emp-7"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_request_id_is_propagated(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_request_id_is_generated(client):
    response = await client.get("/health")

    assert response.headers["X-Request-ID"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_error_body_carries_request_id(client):
    response = await client.post(
        "/loyalty/purchase", json={"customerId": "nobody"}, headers={"X-Request-ID": "req-404"}
    )

    assert response.status_code == 404
    assert response.json() == {
        "error": "Customer not found",
        "detail": "Customer nobody not found",
        "request_id": "req-404",
    }
