from decimal import Decimal

import pytest
import requests

from checkout.domain.errors import ExternalGatewayError
from checkout.services.payment_gateway import PaystackClient
from checkout.utils.money import from_minor_units, to_minor_units
from checkout.utils.retry import is_transient


class FakeResponse:
    def __init__(self, body, status_code=200):
        self.body = body
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        if isinstance(self.body, Exception):
            raise self.body
        return self.body


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.calls.append({"method": method, "url": url, "json": json, "headers": headers, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def client_with(*responses):
    session = FakeSession(*responses)
    client = PaystackClient(
        base_url="https://api.paystack.test/",
        secret_key="sk_test_abc",
        callback_url="https://shop.test/callback",
        session=session,
    )
    return client, session


def test_minor_units():
    assert to_minor_units(Decimal("24.99")) == 2499
    assert to_minor_units("15") == 1500
    assert from_minor_units(2499) == Decimal("24.99")


def test_initialize_sends_minor_units():
    client, session = client_with(
        FakeResponse(
            {
                "status": True,
                "message": "Authorization URL created",
                "data": {"authorization_url": "https://pay.test/abc", "access_code": "abc", "reference": "TXN-1-1"},
            }
        )
    )

    init = client.initialize("ama@example.com", Decimal("24.99"), "TXN-1-1", metadata={"order_id": 1})

    assert init.authorization_url == "https://pay.test/abc"
    [call] = session.calls
    assert call["method"] == "POST"
    assert call["url"] == "https://api.paystack.test/transaction/initialize"
    assert call["json"]["amount"] == 2499
    assert call["json"]["metadata"] == {"order_id": 1}
    assert call["json"]["callback_url"] == "https://shop.test/callback"
    assert call["headers"]["Authorization"] == "Bearer sk_test_abc"


def test_verify_parses_transaction():
    client, _ = client_with(
        FakeResponse(
            {
                "status": True,
                "data": {
                    "reference": "TXN-1-1",
                    "status": "success",
                    "amount": 1500,
                    "currency": "GHS",
                    "channel": "mobile_money",
                    "authorization": {"authorization_code": "AUTH_x"},
                    "metadata": {"order_id": 1},
                },
            }
        )
    )

    verification = client.verify("TXN-1-1")

    assert verification.succeeded
    assert verification.amount == Decimal("15.00")
    assert verification.channel == "mobile_money"
    assert verification.authorization_code == "AUTH_x"
    assert verification.metadata == {"order_id": 1}


def test_verify_tolerates_string_metadata():
    client, _ = client_with(
        FakeResponse({"status": True, "data": {"reference": "R", "status": "abandoned", "amount": 0, "metadata": ""}})
    )

    verification = client.verify("R")

    assert not verification.succeeded
    assert verification.metadata == {}


def test_provider_error_envelope():
    client, _ = client_with(FakeResponse({"status": False, "message": "Transaction reference not found"}))

    with pytest.raises(ExternalGatewayError, match="Transaction reference not found"):
        client.verify("R")


def test_network_errors_are_retried():
    client, session = client_with(
        requests.ConnectionError("reset"),
        FakeResponse({}, status_code=502),
        FakeResponse({"status": True, "data": {"reference": "R", "status": "success", "amount": 100}}),
    )

    assert client.verify("R").amount == Decimal("1.00")
    assert len(session.calls) == 3


def test_refused_request_is_not_repeated():
    client, session = client_with(
        FakeResponse({"status": False, "message": "Duplicate Transaction Reference"}, status_code=400)
    )

    with pytest.raises(ExternalGatewayError):
        client.initialize("ama@example.com", Decimal("5.00"), "TXN-1-1")
    assert len(session.calls) == 1


def test_transient_failures():
    assert is_transient(requests.ConnectionError("reset"))
    assert is_transient(requests.Timeout("slow"))
    assert is_transient(requests.HTTPError("503", response=FakeResponse({}, status_code=503)))
    assert not is_transient(requests.HTTPError("401", response=FakeResponse({}, status_code=401)))
    assert not is_transient(ValueError("not json"))


def test_gives_up_after_three_attempts():
    client, session = client_with(*[requests.Timeout("slow")] * 3)

    with pytest.raises(ExternalGatewayError):
        client.verify("R")
    assert len(session.calls) == 3


def test_invalid_json():
    client, _ = client_with(FakeResponse(ValueError("not json")))

    with pytest.raises(ExternalGatewayError):
        client.verify("R")
