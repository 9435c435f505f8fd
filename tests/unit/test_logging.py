"""Unit tests for request-scoped log context."""

from __future__ import annotations

import structlog

from bajas.core.logging import request_context


def test_request_context_binds_and_restores():
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(client_code="previo")

    with request_context(client_code="100200", reason="Mudanza"):
        assert structlog.contextvars.get_contextvars() == {
            "client_code": "100200",
            "reason": "Mudanza",
        }

    assert structlog.contextvars.get_contextvars() == {"client_code": "previo"}
    structlog.contextvars.clear_contextvars()
