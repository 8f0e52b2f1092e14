"""Tests for structured logging."""

import json
from io import StringIO

import pytest
import structlog

from genui.observability.logging import (
    SecretRedactor,
    bind_trace_id,
    clear_trace_id,
    get_logger,
    setup_logging,
)


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_json_format(self) -> None:
        """Should configure JSON format for production."""
        setup_logging(level="INFO", format="json", redact_pii=False)
        logger = get_logger("test")
        # Should not raise
        logger.info("test_message")

    def test_setup_console_format(self) -> None:
        """Should configure console format for development."""
        setup_logging(level="DEBUG", format="console", redact_pii=False)
        logger = get_logger("test")
        logger.debug("test_message")

    def test_setup_with_redaction(self) -> None:
        """Should configure redaction when enabled."""
        setup_logging(level="INFO", format="json", redact_pii=True)
        logger = get_logger("test")
        logger.info("test_message", api_key="sk-should-not-appear")

    def test_unknown_level_defaults_to_info(self) -> None:
        setup_logging(level="LOUD", format="json")
        get_logger("test").info("test_message")


class TestTraceIdBinding:
    """Tests for trace id binding via structlog.contextvars."""

    def test_bind_and_clear(self) -> None:
        bind_trace_id("trace-123")
        assert structlog.contextvars.get_contextvars()["trace_id"] == "trace-123"

        clear_trace_id()
        assert "trace_id" not in structlog.contextvars.get_contextvars()

    def test_bound_trace_id_appears_in_output(self) -> None:
        """Bound trace id is merged into every event."""
        output = StringIO()
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(0),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(output),
            cache_logger_on_first_use=False,
        )

        bind_trace_id("abc123")
        try:
            structlog.get_logger("test").info("pipeline_start", flow="generate")
        finally:
            clear_trace_id()

        parsed = json.loads(output.getvalue().strip())
        assert parsed["event"] == "pipeline_start"
        assert parsed["trace_id"] == "abc123"
        assert parsed["flow"] == "generate"


class TestSecretRedactor:
    """Tests for secret and PII redaction."""

    @pytest.fixture
    def redactor(self) -> SecretRedactor:
        return SecretRedactor()

    def test_redacts_sensitive_keys(self, redactor: SecretRedactor) -> None:
        """Should redact values for credential-like keys."""
        event_dict = {"api_key": "key123", "Authorization": "Bearer x", "other": "value"}
        result = redactor(None, None, event_dict)  # type: ignore
        assert result["api_key"] == "[REDACTED]"
        assert result["Authorization"] == "[REDACTED]"
        assert result["other"] == "value"

    def test_redacts_vendor_keys_inside_messages(self, redactor: SecretRedactor) -> None:
        """Vendor key shapes are redacted even inside error text."""
        event_dict = {
            "error": "Authentication failed for sk-abcdefghijklmnopqrstuvwx",
            "detail": "groq key gsk_ABCDEFGHIJKLMNOPQRST rejected",
        }
        result = redactor(None, None, event_dict)  # type: ignore
        assert "sk-abcdefghijklmnopqrstuvwx" not in result["error"]
        assert "[API_KEY]" in result["error"]
        assert "[API_KEY]" in result["detail"]

    def test_redacts_email_pattern(self, redactor: SecretRedactor) -> None:
        event_dict = {"message": "Contact user@example.com for help"}
        result = redactor(None, None, event_dict)  # type: ignore
        assert result["message"] == "Contact [EMAIL] for help"

    def test_handles_nested_dicts_and_lists(self, redactor: SecretRedactor) -> None:
        event_dict = {
            "user": {"email": "user@example.com", "name": "Ada"},
            "recipients": ["a@example.com", 3],
        }
        result = redactor(None, None, event_dict)  # type: ignore
        assert result["user"]["email"] == "[REDACTED]"
        assert result["user"]["name"] == "Ada"
        assert result["recipients"] == ["[EMAIL]", 3]

    def test_preserves_non_sensitive_data(self, redactor: SecretRedactor) -> None:
        event_dict = {
            "event": "layer_llm_success",
            "layer": "schema",
            "total_tokens": 1200,
            "chain": ["gemini:gemini-2.5-flash"],
        }
        result = redactor(None, None, event_dict)  # type: ignore
        assert result == event_dict
