"""
Unit tests for the core layer.

Tests cover:
- Error hierarchy and HTTP status mapping
- Settings validation (zoom bounds, environment, production rules)
- Notifications (log + sink)
- Request ids, structured logging and metrics helpers
"""

import json
import logging

import pytest
from pydantic import ValidationError

from policy_graph.core.config import AppEnvironment, Settings
from policy_graph.core.errors import (
    ConflictError,
    CycleDetectedError,
    InvalidConnectionError,
    InvalidPayloadError,
    MalformedRuleTreeError,
    NotFoundError,
    PolicyGraphError,
    TypeMismatchError,
    get_status_code,
)
from policy_graph.core.notifications import Notification, notify
from policy_graph.core.observability import (
    StructuredFormatter,
    generate_request_id,
    get_request_id,
    metrics,
    record_metric,
    set_correlation_id,
)

# =============================================================================
# Errors
# =============================================================================


class TestErrors:
    """Tests for domain exceptions."""

    @pytest.mark.parametrize(
        "error,expected",
        [
            (InvalidConnectionError("x"), 422),
            (TypeMismatchError("number", "boolean"), 422),
            (CycleDetectedError("x"), 409),
            (NotFoundError("x"), 404),
            (ConflictError("x"), 409),
            (InvalidPayloadError("x"), 400),
            (MalformedRuleTreeError("x"), 422),
            (PolicyGraphError("x"), 500),
            (RuntimeError("x"), 500),
        ],
    )
    def test_status_codes(self, error, expected):
        assert get_status_code(error) == expected

    def test_type_mismatch_message_and_details(self):
        error = TypeMismatchError("string", "boolean", details={"from": "a"})
        assert error.message == "Type mismatch: cannot connect string to boolean"
        assert error.details == {"from_type": "string", "to_type": "boolean", "from": "a"}
        assert isinstance(error, InvalidConnectionError)

    def test_details_default_to_empty(self):
        assert NotFoundError("gone").details == {}
        assert str(NotFoundError("gone")) == "gone"


# =============================================================================
# Settings
# =============================================================================


class TestSettings:
    """Tests for configuration validation."""

    def test_defaults(self):
        settings = Settings()
        assert settings.app_env == AppEnvironment.LOCAL
        assert settings.canvas_zoom_min == 0.1
        assert settings.canvas_zoom_max == 3.0
        assert settings.import_result_x == 900.0

    def test_app_env_case_insensitive(self):
        assert Settings(app_env="TEST").app_env == AppEnvironment.TEST

    def test_invalid_app_env(self):
        with pytest.raises(ValidationError, match="app_env must be one of"):
            Settings(app_env="staging")

    def test_zoom_bounds_must_be_ordered(self):
        with pytest.raises(ValidationError, match="canvas_zoom_min"):
            Settings(canvas_zoom_min=3.0, canvas_zoom_max=1.0)

    def test_zoom_step_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(canvas_zoom_step=0)

    def test_cors_origins_list(self):
        settings = Settings(cors_origins="https://a.example, https://b.example")
        assert settings.cors_origins_list == ["https://a.example", "https://b.example"]

    def test_prod_requires_metrics_token(self):
        with pytest.raises(ValidationError, match="METRICS_TOKEN"):
            Settings(app_env="prod", cors_origins="https://hr.example")

    def test_prod_rejects_localhost_cors(self):
        with pytest.raises(ValidationError, match="localhost"):
            Settings(app_env="prod", metrics_token="secret")

    def test_prod_valid(self):
        settings = Settings(
            app_env="prod", metrics_token="secret", cors_origins="https://hr.example"
        )
        assert settings.app_env == AppEnvironment.PROD

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("IMPORT_ROW_SPACING", "140")
        assert Settings().import_row_spacing == 140.0


# =============================================================================
# Notifications
# =============================================================================


class TestNotifications:
    """Tests for user-visible notifications."""

    def test_notify_forwards_to_sink(self):
        received = []
        notification = notify(
            "connection_rejected", "Type mismatch", details={"from": "a"}, sink=received.append
        )
        assert received == [notification]
        assert notification == Notification(
            event="connection_rejected", message="Type mismatch", details={"from": "a"}
        )

    def test_notify_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="policy_graph.core.notifications"):
            notify("rule_tree_import_recovered", "2 fragments")
        assert "rule_tree_import_recovered" in caplog.text

    def test_info_level(self, caplog):
        with caplog.at_level(logging.INFO, logger="policy_graph.core.notifications"):
            notification = notify("saved", "Saved", level="info")
        assert notification.level == "info"
        assert caplog.records[-1].levelno == logging.INFO


# =============================================================================
# Observability
# =============================================================================


class TestObservability:
    """Tests for request ids, logging format and metrics helpers."""

    def test_request_id_round_trip(self):
        request_id = generate_request_id()
        set_correlation_id(request_id)
        assert get_request_id() == request_id

    def test_generated_ids_are_unique(self):
        assert generate_request_id() != generate_request_id()

    def test_structured_formatter_outputs_json(self):
        record = logging.LogRecord(
            name="policy_graph.test",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="compiled %d rules",
            args=(3,),
            exc_info=None,
        )
        record.event = "compiled"
        payload = json.loads(StructuredFormatter().format(record))
        assert payload["message"] == "compiled 3 rules"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "policy_graph.test"
        assert payload["extra"]["event"] == "compiled"

    def test_record_metric_swallows_failures(self):
        def broken(_metrics):
            raise RuntimeError("registry unavailable")

        record_metric(broken)

    def test_record_metric_updates_counter(self):
        counter = metrics.graph_connections_total.labels(outcome="connected")
        before = counter._value.get()
        record_metric(lambda m: m.graph_connections_total.labels(outcome="connected").inc())
        assert counter._value.get() == before + 1
