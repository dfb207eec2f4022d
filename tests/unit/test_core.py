"""
Unit tests for the core layer: errors, request context, logging, settings
"""
import json
import logging

import pytest
import structlog

from factories import make_settings
from roomstage.core.errors import (
    ConfigurationError,
    ErrorCode,
    GenerationError,
    ProviderError,
    StagingError,
    UploadError,
)
from roomstage.core.logging import setup_logging
from roomstage.core.request_context import (
    bind_request_id,
    get_logger,
    get_request_id,
    new_request_id,
    reset_request_id,
)


class TestErrors:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "error,retryable",
        [
            (GenerationError(ErrorCode.GENERATION_FAILED, "x"), True),
            (StagingError(ErrorCode.INTERNAL_ERROR, "x"), True),
            (GenerationError(ErrorCode.OUTPUT_TOO_SMALL, "x"), False),
            (ConfigurationError(ErrorCode.MISSING_PROVIDER_KEY, "x"), False),
            (UploadError("x"), False),
        ],
    )
    def test_retryable_codes(self, error, retryable):
        assert error.retryable is retryable

    @pytest.mark.unit
    def test_provider_error_carries_provider(self):
        error = ProviderError("stability", "HTTP 500", "req_1")

        assert error.code == ErrorCode.GENERATION_FAILED
        assert error.provider == "stability"
        assert error.request_id == "req_1"
        assert str(error) == "GENERATION_FAILED: HTTP 500"


class TestRequestContext:
    """Tests for request ID propagation"""

    @pytest.mark.unit
    def test_new_request_id_format(self):
        request_id = new_request_id()

        prefix, millis, suffix = request_id.split("_")
        assert prefix == "req"
        assert len(millis) == 13
        assert len(suffix) == 8

    @pytest.mark.unit
    def test_bind_and_reset(self):
        token = bind_request_id("req_abc")
        try:
            assert get_request_id() == "req_abc"
        finally:
            reset_request_id(token)

        assert get_request_id() == ""

    @pytest.mark.unit
    def test_contextual_logger_prefixes_request_id(self, caplog):
        caplog.set_level(logging.INFO)
        logger = get_logger("roomstage.test")

        token = bind_request_id("req_xyz")
        try:
            logger.info("staging started")
        finally:
            reset_request_id(token)
        logger.info("outside request")

        messages = [r.getMessage() for r in caplog.records if r.name == "roomstage.test"]
        assert messages == ["[req_xyz] staging started", "outside request"]


class TestSetupLogging:
    @pytest.mark.unit
    @pytest.mark.parametrize("log_format", ["json", "console"])
    def test_configures_root_logger(self, log_format):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging(make_settings(log_level="debug", log_format=log_format))

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0], logging.StreamHandler)
            assert logging.getLogger("aiohttp.access").level == logging.WARNING
        finally:
            root.handlers = saved_handlers
            root.setLevel(saved_level)
            structlog.reset_defaults()


    @pytest.mark.unit
    def test_json_lines_carry_bound_request_id(self, capsys):
        """Test that ContextualLogger records are rendered by structlog with the bound request ID"""
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging(make_settings(log_format="json"))
            capsys.readouterr()

            token = bind_request_id("req_json")
            try:
                get_logger("roomstage.test").info("mask built")
            finally:
                reset_request_id(token)

            lines = [line for line in capsys.readouterr().out.splitlines() if line.strip()]
            event = json.loads(lines[-1])
        finally:
            root.handlers = saved_handlers
            root.setLevel(saved_level)
            structlog.reset_defaults()

        assert event["event"] == "[req_json] mask built"
        assert event["request_id"] == "req_json"
        assert event["level"] == "info"
        assert event["logger"] == "roomstage.test"


class TestSettings:
    @pytest.mark.unit
    def test_defaults(self):
        settings = make_settings()

        assert settings.enable_two_pass_generation is True
        assert settings.pass1_strength == 0.35
        assert settings.pass2_strength == 0.75
        assert settings.stability_strength == 0.8
        assert settings.stability_mask_invert is True

    @pytest.mark.unit
    def test_dev_mock_requires_development(self):
        assert make_settings(allow_mock_fallback=True).credentials().allow_dev_mock is False
        assert make_settings(allow_mock_fallback=True, environment="development").credentials().allow_dev_mock is True

    @pytest.mark.unit
    def test_credentials_snapshot(self):
        credentials = make_settings(stability_api_key="sk", force_mock_ai=True).credentials()

        assert credentials.has_stability is True
        assert credentials.has_gemini is False
        assert credentials.force_mock is True
