"""Tests for the request context middleware.

Verifies that every response gets:
- An X-Request-ID header (generated or echoed from the request)
- Request timing logged
"""

from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from app.middleware.request_context import (
    _RequestContextFilter,
    install_request_id_filter,
    request_id_var,
)


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    """When no X-Request-ID header is sent, one is generated."""
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    # Should be a valid UUID
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    """When the client sends X-Request-ID, the same value is echoed back."""
    custom_id = "my-custom-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": custom_id})
    assert resp.headers.get("x-request-id") == custom_id


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    """Even error responses (401, 404) get an X-Request-ID header."""
    resp = client.get("/v1/courses")  # No auth token, 401
    assert resp.headers.get("x-request-id") is not None


def test_filter_stamps_request_id_on_child_logger_records(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Records from any module carry the id of the request being served."""
    install_request_id_filter()
    install_request_id_filter()
    caplog.handler.addFilter(_RequestContextFilter())

    token = request_id_var.set("req-42")
    try:
        logging.getLogger("app.services.progress_service").warning("watched")
    finally:
        request_id_var.reset(token)

    assert caplog.records[-1].request_id == "req-42"
    root = logging.getLogger()
    for handler in root.handlers:
        assert sum(isinstance(f, _RequestContextFilter) for f in handler.filters) <= 1


def test_access_log_line_carries_request_fields(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO, logger="app.middleware.request_context"):
        client.get("/health", headers={"X-Request-ID": "abc"})
    record = next(
        r for r in caplog.records if r.name == "app.middleware.request_context"
    )
    assert record.request_id == "abc"
    assert record.status_code == 200
    assert record.path == "/health"
