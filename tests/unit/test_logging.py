"""Unit tests for utils/logging.py: structlog and stdlib output."""

import json
import logging

import pytest
import structlog

from taskauth.utils.logging import setup_logging


@pytest.fixture()
def restore_logging():
    """Put root handlers and the structlog config back after the test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    saved = structlog.get_config()
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.configure(**saved)


def last_json_line(output: str) -> dict:
    return json.loads(output.strip().splitlines()[-1])


class TestSetupLogging:
    def test_native_structlog_logger_renders(self, restore_logging, capsys):
        setup_logging("INFO", "json")
        structlog.get_logger("taskauth.events").info("token issued", jti="abc")
        event = last_json_line(capsys.readouterr().out)
        assert event["event"] == "token issued"
        assert event["jti"] == "abc"
        assert event["level"] == "info"

    def test_stdlib_records_carry_logger_name(self, restore_logging, capsys):
        setup_logging("INFO", "json")
        logging.getLogger("taskauth.auth.verifier").warning("token rejected")
        event = last_json_line(capsys.readouterr().out)
        assert event["event"] == "token rejected"
        assert event["logger"] == "taskauth.auth.verifier"

    def test_level_filters_native_logger(self, restore_logging, capsys):
        setup_logging("WARNING", "json")
        structlog.get_logger().info("quiet")
        assert "quiet" not in capsys.readouterr().out

    def test_contextvars_are_merged(self, restore_logging, capsys):
        setup_logging("INFO", "json")
        with structlog.contextvars.bound_contextvars(request_id="req-1"):
            logging.getLogger("taskauth.auth.service").info("refreshed")
        assert last_json_line(capsys.readouterr().out)["request_id"] == "req-1"

    def test_console_format(self, restore_logging, capsys):
        setup_logging("INFO", "console")
        structlog.get_logger().info("hello console")
        assert "hello console" in capsys.readouterr().out
