"""Tests for logging configuration."""

import logging

import structlog

from carepod.config import Settings
from carepod.utils.logging import REDACTED, redact_bodies, render_processor, setup_logging


class TestRedaction:
    """Document bodies never reach the renderer."""

    def test_body_fields_replaced(self):
        event = {"event": "pod_write", "url": "http://pod/x.json", "body": "Hb 13.5"}
        out = redact_bodies(None, "info", event)
        assert out["body"] == REDACTED
        assert out["url"] == "http://pod/x.json"

    def test_identities_kept(self):
        event = {"event": "grant_activated", "doctor": "http://pod/doctor#me"}
        assert redact_bodies(None, "info", dict(event)) == event


class TestRenderer:
    """Renderer follows ``log_format``."""

    def test_json(self):
        settings = Settings(_env_file=None, log_format="json")
        assert isinstance(render_processor(settings), structlog.processors.JSONRenderer)

    def test_console(self):
        settings = Settings(_env_file=None, log_format="console")
        assert isinstance(render_processor(settings), structlog.dev.ConsoleRenderer)


def test_httpx_request_lines_quieted():
    setup_logging(Settings(_env_file=None, log_level="DEBUG"))
    assert logging.getLogger("httpx").level == logging.WARNING
