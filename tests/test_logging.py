import json
import logging

from markup_printer.core.logging import JsonFormatter, RequestIdFilter, configure_logging, current_job, job_context


def _record(msg="hello", exc_info=None):
    return logging.LogRecord("markup_printer.test", logging.INFO, __file__, 1, msg, None, exc_info)


def test_request_id_filter_outside_request():
    rec = _record()
    assert RequestIdFilter().filter(rec) is True
    assert rec.request_id == "-"
    assert rec.path == "-"


def test_json_formatter_fields():
    rec = _record("queued 3 bytes")
    RequestIdFilter().filter(rec)
    body = json.loads(JsonFormatter().format(rec))
    assert body["level"] == "INFO"
    assert body["logger"] == "markup_printer.test"
    assert body["msg"] == "queued 3 bytes"
    assert body["request_id"] == "-"


def test_configure_logging_json(monkeypatch):
    monkeypatch.setenv("MARKUPPRINTER_JSON_LOGS", "true")
    root = logging.getLogger()
    saved = root.handlers[:], root.level
    try:
        configure_logging(logging.DEBUG)
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert logging.getLogger("flask.app").propagate
    finally:
        root.handlers, level = saved
        root.setLevel(level)


def test_job_context_labels_records():
    assert current_job() == "-"
    with job_context("text-abc123"):
        rec = _record("sending")
        RequestIdFilter().filter(rec)
        assert json.loads(JsonFormatter().format(rec))["job"] == "text-abc123"
    assert current_job() == "-"
