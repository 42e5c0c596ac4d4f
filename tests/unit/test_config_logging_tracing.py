"""
Tests for the ambient stack: settings, structured logging and tracing.

Covers:
- Settings defaults, SF_ environment overrides and validation
- structlog one-time configuration and request context binding
- record_fault on recording and non-recording spans
"""

import pytest
import structlog

# =============================================================================
# Settings
# =============================================================================


class TestSettings:
    """pydantic-settings configuration."""

    def test_defaults(self) -> None:
        """Development defaults with the three core headers required."""
        from service_faults.core.config import Settings

        settings = Settings()

        assert settings.service_name == "service-faults"
        assert settings.is_production is False
        assert settings.required_headers == ["session-id", "transaction-id", "channel-id"]
        assert "/docs" in settings.header_exempt_paths

    def test_environment_variables_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """SF_ prefixed variables override defaults."""
        from service_faults.core.config import get_settings

        monkeypatch.setenv("SF_ENVIRONMENT", "Production")
        monkeypatch.setenv("SF_LOG_LEVEL", "debug")
        monkeypatch.setenv("SF_REQUIRED_HEADERS", '["Transaction-Id"]')

        settings = get_settings()

        assert settings.is_production is True
        assert settings.log_level == "DEBUG"
        assert settings.required_headers == ["transaction-id"]

    def test_unknown_log_level_is_configuration_error(self) -> None:
        """Log levels the logging module does not know are rejected."""
        from service_faults.core.config import Settings
        from service_faults.core.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError) as exc_info:
            Settings(log_level="LOUD")

        assert exc_info.value.setting == "log_level"

    def test_configuration_error_is_namespaced(self) -> None:
        """Library errors share the ServiceFaultsError base."""
        from service_faults.core.exceptions import ConfigurationError, ServiceFaultsError

        error = ConfigurationError("required_headers", "no reserved code")

        assert isinstance(error, ServiceFaultsError)
        assert str(error) == "Invalid setting 'required_headers': no reserved code"


# =============================================================================
# Logging
# =============================================================================


class TestLogging:
    """structlog configuration and request context."""

    @pytest.fixture(autouse=True)
    def reset(self):
        from service_faults.core.logging import clear_request_context, reset_logging

        clear_request_context()
        reset_logging()
        yield
        clear_request_context()
        reset_logging()

    def test_configure_logging_runs_once(self) -> None:
        """Repeated calls keep the first configuration."""
        from service_faults.core import logging as sf_logging

        sf_logging.configure_logging(log_level="INFO", json_output=True)
        first = structlog.get_config()["processors"]

        sf_logging.configure_logging(log_level="DEBUG", json_output=False)

        assert sf_logging._configured is True
        assert structlog.get_config()["processors"] is first

    def test_json_renderer_in_json_mode(self) -> None:
        """json_output selects the JSON renderer."""
        from service_faults.core.logging import configure_logging

        configure_logging(json_output=True)

        assert isinstance(structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer)

    def test_service_info_processor_stamps_service(self) -> None:
        """Every entry gets the service name unless one is set."""
        from service_faults.core.logging import service_info_processor

        processor = service_info_processor("orders-api")

        assert processor(None, "info", {"event": "x"})["service"] == "orders-api"
        assert processor(None, "info", {"event": "x", "service": "other"})["service"] == "other"

    def test_bind_request_context_skips_none(self) -> None:
        """Absent header values are not bound."""
        from service_faults.core.logging import bind_request_context

        bind_request_context(transaction_id="t-1", session_id=None)

        assert structlog.contextvars.get_contextvars() == {"transaction_id": "t-1"}

    def test_clear_request_context(self) -> None:
        """Clearing drops every bound value."""
        from service_faults.core.logging import bind_request_context, clear_request_context

        bind_request_context(channel_id="web")
        clear_request_context()

        assert structlog.contextvars.get_contextvars() == {}


# =============================================================================
# Tracing
# =============================================================================


class TestTracing:
    """OpenTelemetry fault recording."""

    @pytest.fixture
    def tracer_and_exporter(self):
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import SimpleSpanProcessor
        from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
            InMemorySpanExporter,
        )

        exporter = InMemorySpanExporter()
        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(exporter))
        return provider.get_tracer(__name__), exporter

    def test_record_fault_without_span_is_noop(self) -> None:
        """No recording span means nothing is recorded."""
        from service_faults.core.tracing import record_fault
        from service_faults.errors.codes import ErrorCode
        from service_faults.errors.models import ServiceException

        assert record_fault(ServiceException.from_code(ErrorCode.TIMEOUT)) is False

    def test_record_fault_marks_span(self, tracer_and_exporter) -> None:
        """Code attributes, error status and the cause are recorded."""
        from opentelemetry.trace import StatusCode

        from service_faults.core.tracing import (
            ATTR_CORRELATION_ID,
            ATTR_FAULT_CODE,
            ATTR_FAULT_CODE_NAME,
            record_fault,
        )
        from service_faults.errors.classifier import classify

        tracer, exporter = tracer_and_exporter
        fault = classify(TimeoutError("upstream slow"), correlation_id="txn-1")

        with tracer.start_as_current_span("request"):
            recorded = record_fault(fault)

        (span,) = exporter.get_finished_spans()
        assert recorded is True
        assert span.attributes[ATTR_FAULT_CODE] == 570
        assert span.attributes[ATTR_FAULT_CODE_NAME] == "Timeout"
        assert span.attributes[ATTR_CORRELATION_ID] == "txn-1"
        assert span.status.status_code is StatusCode.ERROR
        assert span.events[0].name == "exception"
        assert span.events[0].attributes["exception.type"] == "TimeoutError"

    def test_configure_tracing_once(self) -> None:
        """configure_tracing sets the module flag; reset clears it."""
        from service_faults.core import tracing

        tracing.reset_tracing()
        tracing.configure_tracing(service_name="orders-api", service_version="1.2.3")

        assert tracing._configured is True
        tracing.reset_tracing()
        assert tracing._configured is False

    def test_get_tracer_records_faults_on_its_spans(self) -> None:
        """Spans from get_tracer are usable by record_fault."""
        from service_faults.core.tracing import get_tracer, record_fault
        from service_faults.errors.classifier import classify

        tracer = get_tracer(__name__)

        with tracer.start_as_current_span("work"):
            recorded = record_fault(classify(KeyError("k")))

        assert recorded is tracer.start_span("probe").is_recording()
