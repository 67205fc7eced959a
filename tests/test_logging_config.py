# tests/test_logging_config.py
import logging

from pythonjsonlogger import jsonlogger

from persona_dispatch.logging_config import (
    PersonaContextFilter,
    RedactingFilter,
    setup_structured_logging,
)


def make_record(msg, **extra):
    record = logging.LogRecord("test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_context_filter_defaults_persona_id():
    record = make_record("routed")
    assert PersonaContextFilter().filter(record)
    assert record.persona_id == "N/A"


def test_context_filter_keeps_given_persona_id():
    record = make_record("routed", persona_id="finance-ops")
    PersonaContextFilter().filter(record)
    assert record.persona_id == "finance-ops"


def test_redacting_filter_masks_secrets():
    record = make_record("Routing 'my API_KEY=abc123, token: xyz and sk-" + "a" * 40 + "'")
    assert RedactingFilter().filter(record)
    assert "abc123" not in record.msg
    assert "xyz" not in record.msg
    assert "sk-aaaa" not in record.msg
    assert record.msg.count("***REDACTED***") == 3


def test_redacting_filter_ignores_non_string_messages():
    record = make_record({"token": "keep"})
    RedactingFilter().filter(record)
    assert record.msg == {"token": "keep"}


def test_setup_structured_logging_installs_json_handler(monkeypatch):
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(root, "level", root.level)

    setup_structured_logging(logging.DEBUG)

    assert len(root.handlers) == 1
    handler = root.handlers[0]
    assert isinstance(handler.formatter, jsonlogger.JsonFormatter)
    assert {type(f) for f in handler.filters} == {PersonaContextFilter, RedactingFilter}
    assert root.level == logging.DEBUG

    setup_structured_logging(logging.INFO)
    assert len(root.handlers) == 1
