import json
import logging
import sys
from decimal import Decimal

from config.logging import JsonFormatter, SamplingFilter


def _record(msg="order_created", level=logging.INFO, **extra):
    record = logging.LogRecord("storefront.orders", level, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_merges_extras():
    line = JsonFormatter().format(_record(event="order_created", order_id=7, total_amount=Decimal("13000.00")))
    payload = json.loads(line)

    assert payload["message"] == "order_created"
    assert payload["level"] == "INFO"
    assert payload["name"] == "storefront.orders"
    assert payload["order_id"] == 7
    assert payload["total_amount"] == "13000.00"
    assert payload["time"].endswith("Z")
    assert "pathname" not in payload


def test_json_formatter_includes_exception_text():
    try:
        raise ValueError("boom")
    except ValueError:
        record = _record("order_failed", level=logging.ERROR)
        record.exc_info = sys.exc_info()

    payload = json.loads(JsonFormatter().format(record))
    assert "ValueError: boom" in payload["exc_info"]


def test_sampling_filter_never_drops_allowed_events():
    flt = SamplingFilter(rate=0.0, levels=["INFO"], allow_events=["order_status_changed"])

    assert flt.filter(_record("order_status_changed")) is True
    assert flt.filter(_record("order_payment_status_changed")) is False
    assert flt.filter(_record("order_payment_verification_skipped", level=logging.WARNING)) is True


def test_sampling_filter_full_rate_keeps_everything():
    flt = SamplingFilter(rate=1.0)

    assert all(flt.filter(_record("cart.item_added")) for _ in range(20))
