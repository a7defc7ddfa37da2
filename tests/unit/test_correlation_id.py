from __future__ import annotations

import logging

from harbor_realtime.api.middleware.correlation_id import CorrelationIdFilter, correlation_id_ctx


def _record() -> logging.LogRecord:
    return logging.LogRecord("harbor", logging.INFO, __file__, 1, "hello", None, None)


def test_filter_stamps_current_request_id():
    token = correlation_id_ctx.set("req-7")
    try:
        record = _record()
        assert CorrelationIdFilter().filter(record) is True
    finally:
        correlation_id_ctx.reset(token)

    assert record.correlation_id == "req-7"


def test_filter_outside_a_request_uses_placeholder():
    record = _record()
    CorrelationIdFilter().filter(record)
    assert record.correlation_id == "-"
