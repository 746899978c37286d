import json
import logging

import httpx
from fastapi.testclient import TestClient

from cost_manager.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    request_id_ctx,
)
from cost_manager.main import create_app
from tests.conftest import refuse_network


def make_record(msg="rejected", **extra):
    record = logging.LogRecord("cost_manager.errors", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_includes_error_context():
    record = make_record(error_code="validation_error", error_field="sum")
    line = json.loads(JsonFormatter().format(record))
    assert line["message"] == "rejected"
    assert line["logger"] == "cost_manager.errors"
    assert line["error_code"] == "validation_error"
    assert line["error_field"] == "sum"


def test_formatter_omits_absent_context():
    line = json.loads(JsonFormatter().format(make_record(error_field=None)))
    assert "error_code" not in line
    assert "error_field" not in line
    assert line["request_id"] == "-"


def test_filter_tags_record_with_bound_request_id():
    record = make_record()
    token = request_id_ctx.set("abc123")
    try:
        RequestIdFilter().filter(record)
    finally:
        request_id_ctx.reset(token)
    assert json.loads(JsonFormatter().format(record))["request_id"] == "abc123"


def test_request_id_echoed_or_generated(settings):
    app = create_app(settings_override=settings, rates_transport=httpx.MockTransport(refuse_network))
    client = TestClient(app)
    assert client.get("/health", headers={"X-Request-ID": "req-7"}).headers["x-request-id"] == "req-7"
    assert client.get("/health").headers["x-request-id"]


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(logging.DEBUG)
        self.records = []

    def emit(self, record):
        self.records.append(record)


def test_domain_error_logged_with_code_and_field(settings):
    app = create_app(settings_override=settings, rates_transport=httpx.MockTransport(refuse_network))
    client = TestClient(app)
    handler = ListHandler()
    errors_logger = logging.getLogger("cost_manager.errors")
    errors_logger.addHandler(handler)
    try:
        resp = client.post("/costs", json={"sum": 1, "currency": "JPY", "category": "x"})
    finally:
        errors_logger.removeHandler(handler)
    assert resp.status_code == 400
    assert handler.records
    assert handler.records[-1].error_code == "validation_error"
    assert handler.records[-1].error_field == "currency"
