"""Tests for structured logging setup."""

import json
import logging
import sys

import pytest

from emr_share.adapters.identity import StaticIdentity
from emr_share.domain.ports import UnauthorizedError
from emr_share.infrastructure.logging_config import (
    ContextTextFormatter,
    StructuredFormatter,
    log_context,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def make_log_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="emr_share.domain.services",
        level=logging.WARNING,
        pathname=__file__,
        lineno=42,
        msg="Denied read of record %s for role %s",
        args=("emr1", "doctor"),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    """Test suite for StructuredFormatter."""

    def test_json_fields(self):
        output = json.loads(StructuredFormatter().format(make_log_record()))

        assert output["level"] == "WARNING"
        assert output["logger"] == "emr_share.domain.services"
        assert output["message"] == "Denied read of record emr1 for role doctor"
        assert output["timestamp"].endswith("Z")
        assert "emr_id" not in output

    def test_transaction_context(self):
        record = make_log_record(emr_id="emr1", caller_role="doctor", target_role="hospital", caller_id="x")
        output = json.loads(StructuredFormatter().format(record))

        assert output["emr_id"] == "emr1"
        assert output["caller_role"] == "doctor"
        assert output["target_role"] == "hospital"
        assert "caller_id" not in output

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_log_record(exc_info=sys.exc_info())

        output = json.loads(StructuredFormatter().format(record))
        assert "RuntimeError: boom" in output["exception"]


class TestContextTextFormatter:
    """Test suite for ContextTextFormatter."""

    def test_context_appended(self):
        line = ContextTextFormatter().format(make_log_record(emr_id="emr1", caller_role="doctor"))
        assert line.endswith("Denied read of record emr1 for role doctor [emr_id=emr1 caller_role=doctor]")

    def test_plain_without_context(self):
        line = ContextTextFormatter().format(make_log_record())
        assert line.endswith("WARNING - Denied read of record emr1 for role doctor")

    def test_log_context_only_known_fields(self):
        assert log_context(make_log_record(emr_id="emr1", diagnosis="flu")) == {"emr_id": "emr1"}


class TestSetupLogging:
    """Test suite for setup_logging."""

    def test_replaces_handlers(self, restore_root_logger):
        setup_logging(log_level="DEBUG")
        setup_logging(log_level="ERROR")

        assert len(restore_root_logger.handlers) == 1
        assert restore_root_logger.level == logging.ERROR
        assert restore_root_logger.handlers[0].stream is sys.stderr
        assert isinstance(restore_root_logger.handlers[0].formatter, ContextTextFormatter)

    def test_json_formatter(self, restore_root_logger):
        setup_logging(use_json=True)
        assert isinstance(restore_root_logger.handlers[0].formatter, StructuredFormatter)

    def test_unknown_level_falls_back_to_info(self, restore_root_logger):
        setup_logging(log_level="chatty")
        assert restore_root_logger.level == logging.INFO

    def test_duckdb_logger_quieted(self, restore_root_logger):
        setup_logging(log_level="DEBUG")
        assert logging.getLogger("duckdb").level == logging.WARNING


class TestServiceLogContext:
    """Test suite for the context the record service attaches to its logs."""

    def test_denial_carries_record_and_role(self, service, store, record_factory, caplog):
        store.put("emr1", record_factory())

        with caplog.at_level(logging.WARNING, logger="emr_share.domain.services"):
            with pytest.raises(UnauthorizedError):
                service.read_record(StaticIdentity("uid::doctor9", {"role": "doctor"}), "emr1")

        (denial,) = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert log_context(denial) == {"emr_id": "emr1", "caller_role": "doctor"}
        assert "uid::doctor9" not in StructuredFormatter().format(denial)

    def test_mutations_carry_context(self, service, caller, caplog):
        with caplog.at_level(logging.INFO, logger="emr_share.domain.services"):
            service.create_record(caller("doctor", "doctor1"), "emr1", "patient1", None, None, "flu")
            service.share_record(caller("doctor", "doctor1"), "emr1", "hospital2", "hospital")

        contexts = [log_context(r) for r in caplog.records if r.name == "emr_share.domain.services"]
        assert {"emr_id": "emr1", "caller_role": "doctor"} in contexts
        assert {"emr_id": "emr1", "caller_role": "doctor", "target_role": "hospital"} in contexts
        assert all("flu" not in r.getMessage() for r in caplog.records)
