"""Unit tests for logging configuration."""

from __future__ import annotations

import json
from collections.abc import Iterator

import pytest
import structlog

from provisioning.infrastructure.observability.logging import (
    REDACTED,
    redact_sensitive,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


class TestLogging:
    def test_setup_logging_info(self) -> None:
        setup_logging("INFO")  # Should not raise

    def test_setup_logging_debug_console(self) -> None:
        setup_logging("DEBUG", json_output=False)  # Should not raise

    def test_unknown_level_falls_back(self) -> None:
        setup_logging("VERBOSE")  # Should not raise

    def test_json_output_redacts(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging("INFO")
        structlog.get_logger("test").info("identity_created", password="hunter2", identity_id="id-1")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "identity_created"
        assert record["password"] == REDACTED
        assert record["identity_id"] == "id-1"


class TestRedactSensitive:
    def test_masks_known_keys(self) -> None:
        event = {"event": "x", "one_time_password": "p", "authorization": "Bearer t", "user": "u"}
        result = redact_sensitive(None, "info", event)
        assert result["one_time_password"] == REDACTED
        assert result["authorization"] == REDACTED
        assert result["user"] == "u"

    def test_leaves_other_events_alone(self) -> None:
        event = {"event": "x", "step": "Add to group g"}
        assert redact_sensitive(None, "info", dict(event)) == event
