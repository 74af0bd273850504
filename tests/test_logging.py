import structlog

from bizledger.logging_config import (
    LogContext,
    bind_context,
    clear_context,
    get_json_processors,
    get_logger,
    unbind_context,
)


class TestLogContext:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_binds_values_as_strings(self):
        with LogContext(reference_id=42):
            assert structlog.contextvars.get_contextvars()["reference_id"] == "42"

        assert "reference_id" not in structlog.contextvars.get_contextvars()

    def test_restores_outer_binding(self):
        bind_context(reference_id="payroll-1")

        with LogContext(reference_id="journal-1", company_id="acme"):
            inner = structlog.contextvars.get_contextvars()
            assert inner == {"reference_id": "journal-1", "company_id": "acme"}

        assert structlog.contextvars.get_contextvars() == {"reference_id": "payroll-1"}

    def test_unbind_context(self):
        bind_context(company_id="acme", reference_id="x")

        unbind_context("reference_id")

        assert structlog.contextvars.get_contextvars() == {"company_id": "acme"}


class TestLoggerFactory:
    def test_get_logger_returns_bindable_logger(self):
        logger = get_logger("bizledger.test")

        assert hasattr(logger.bind(company_id="acme"), "info")

    def test_json_processors_end_with_renderer(self):
        processors = get_json_processors()

        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert structlog.contextvars.merge_contextvars in processors
