from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests
from common.exceptions import PaymentVerificationFailed
from django.test import override_settings
from payments.gateway import PaymentGateway, get_payment_gateway


def _response(payload, status_code=200):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code}")
    else:
        resp.raise_for_status.return_value = None
    return resp


def _gateway(*responses):
    session = MagicMock()
    session.request.side_effect = list(responses)
    return PaymentGateway(api_key="key", api_secret="secret", base_url="https://pg.test/", timeout=3, session=session)


TOKEN = _response({"code": 0, "response": {"access_token": "tok"}})


def test_verify_success_calls_token_then_lookup():
    gw = _gateway(TOKEN, _response({"response": {"status": "paid", "amount": 53000}}))

    payment = gw.verify("imp_123", Decimal("53000.00"))

    assert payment["status"] == "paid"
    token_call, lookup_call = gw.session.request.call_args_list
    assert token_call.args == ("POST", "https://pg.test/users/getToken")
    assert token_call.kwargs["json"] == {"imp_key": "key", "imp_secret": "secret"}
    assert token_call.kwargs["timeout"] == 3
    assert lookup_call.args == ("GET", "https://pg.test/payments/imp_123")
    assert lookup_call.kwargs["headers"] == {"Authorization": "Bearer tok"}


def test_verify_rejects_unpaid_status():
    gw = _gateway(TOKEN, _response({"response": {"status": "ready", "amount": 53000}}))
    with pytest.raises(PaymentVerificationFailed):
        gw.verify("imp_123", Decimal("53000"))


def test_verify_rejects_amount_mismatch():
    gw = _gateway(TOKEN, _response({"response": {"status": "paid", "amount": 52999}}))
    with pytest.raises(PaymentVerificationFailed) as exc:
        gw.verify("imp_123", Decimal("53000"))
    assert "mismatch" in exc.value.detail


@pytest.mark.parametrize(
    "lookup",
    [
        _response({"message": "not found"}, status_code=404),
        _response({"response": None}),
        _response(["unexpected"]),
    ],
)
def test_verify_rejects_http_errors_and_malformed_payloads(lookup):
    gw = _gateway(TOKEN, lookup)
    with pytest.raises(PaymentVerificationFailed):
        gw.verify("imp_123", Decimal("1000"))


def test_verify_rejects_missing_token():
    gw = _gateway(_response({"response": {}}))
    with pytest.raises(PaymentVerificationFailed):
        gw.verify("imp_123", Decimal("1000"))


def test_timeout_is_verification_failure():
    with patch.object(requests.Session, "request", side_effect=requests.Timeout("slow")) as mocked:
        gw = PaymentGateway(api_key="key", api_secret="secret")
        with pytest.raises(PaymentVerificationFailed) as exc:
            gw.verify("imp_123", Decimal("1000"))
    assert "timed out" in exc.value.detail
    assert mocked.call_count == 1


def test_connection_error_is_verification_failure():
    gw = _gateway(requests.ConnectionError("down"))
    with pytest.raises(PaymentVerificationFailed):
        gw.verify("imp_123", Decimal("1000"))


@override_settings(PAYMENT_GATEWAY_API_KEY="", PAYMENT_GATEWAY_API_SECRET="")
def test_factory_without_credentials_is_unconfigured():
    assert get_payment_gateway().is_configured is False


@override_settings(
    PAYMENT_GATEWAY_API_KEY="k",
    PAYMENT_GATEWAY_API_SECRET="s",
    PAYMENT_GATEWAY_BASE_URL="https://pg.example.com/",
    PAYMENT_GATEWAY_TIMEOUT=5,
)
def test_factory_reads_settings():
    gw = get_payment_gateway()
    assert gw.is_configured is True
    assert gw.base_url == "https://pg.example.com"
    assert gw.timeout == 5
