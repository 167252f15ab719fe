"""Tests for log redaction and per-request log context."""

import pytest
import structlog

from estudimen.utils.logger import REDACTED, redact_sensitive, reset_log_context


class TestRedactSensitive:
    def test_redacts_credentials(self):
        event = {
            "event": "Token pair issued",
            "user_id": "user-123",
            "refresh_token": "eyJhbGciOi...",
            "api_key": "sk-secret",
        }

        result = redact_sensitive(None, "info", event)

        assert result["refresh_token"] == REDACTED
        assert result["api_key"] == REDACTED
        assert result["user_id"] == "user-123"
        assert result["event"] == "Token pair issued"

    def test_leaves_other_events_untouched(self):
        event = {"event": "Scheduler configured", "interval_minutes": 60}

        assert redact_sensitive(None, "info", dict(event)) == event


class TestResetLogContext:
    @pytest.mark.asyncio
    async def test_previous_identity_is_cleared(self):
        structlog.contextvars.bind_contextvars(user_id="previous-user")
        seen = {}

        async def call_next(request):
            seen.update(structlog.contextvars.get_contextvars())
            return "response"

        try:
            result = await reset_log_context(object(), call_next)
        finally:
            structlog.contextvars.clear_contextvars()

        assert result == "response"
        assert seen == {}
