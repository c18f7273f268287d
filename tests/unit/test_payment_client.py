from datetime import date

import httpx
import pytest

from marketplace.client.errors import InvalidPaymentDetails, UnsupportedPaymentMethod
from marketplace.client.payment import PaymentPhase, PaymentSimulator, PhasePacer, validate_payment_details
from marketplace.domain.status import PaymentMethod

TODAY = date(2026, 6, 15)
CARD = {"cardNumber": "4111 1111 1111 1111", "expiryDate": "12/27", "cvv": "123", "nameOnCard": "Jane Doe"}


def test_valid_card_details_are_cleaned():
    cleaned = validate_payment_details("card", CARD, today=TODAY)
    assert cleaned["cardNumber"] == "4111111111111111"
    assert cleaned["nameOnCard"] == "Jane Doe"


@pytest.mark.parametrize("field,value,message", [
    ("cardNumber", "", "Card number is required"),
    ("cardNumber", "4111", "Invalid card number"),
    ("expiryDate", "13/27", "Invalid expiry date (MM/YY)"),
    ("expiryDate", "05/26", "Card has expired"),
    ("cvv", "12", "Invalid CVV"),
    ("nameOnCard", " ", "Name on card is required"),
])
def test_invalid_card_details(field, value, message):
    with pytest.raises(InvalidPaymentDetails) as exc:
        validate_payment_details("card", dict(CARD, **{field: value}), today=TODAY)
    assert exc.value.user_message == message


def test_card_expiring_this_month_is_accepted():
    validate_payment_details("card", dict(CARD, expiryDate="06/26"), today=TODAY)


@pytest.mark.parametrize("upi_id,ok", [("jane.doe@okbank", True), ("j@ok", False), ("jane", False), ("", False)])
def test_upi_ids(upi_id, ok):
    if ok:
        assert validate_payment_details("upi", {"upiId": upi_id}) == {"upiId": upi_id}
    else:
        with pytest.raises(InvalidPaymentDetails):
            validate_payment_details("upi", {"upiId": upi_id})


def test_wallet_and_cash_need_no_details():
    assert validate_payment_details(PaymentMethod.WALLET, None) == {}
    assert validate_payment_details("cash", {"cardNumber": "x"}) == {}


def test_unknown_method():
    with pytest.raises(UnsupportedPaymentMethod):
        validate_payment_details("cheque", {})


@pytest.mark.asyncio
async def test_approved_attempt(mock_api, order_record):
    def handler(request):
        return httpx.Response(200, json={
            "success": True,
            "transactionId": "TXN1",
            "message": "Payment processed successfully",
            "order": order_record(paymentStatus="paid"),
        })

    async with mock_api(handler) as api:
        attempt = await PaymentSimulator(api).simulate(7, "card", CARD)
    assert attempt.success
    assert attempt.transaction_id == "TXN1"
    assert attempt.phase is PaymentPhase.SUCCESS
    assert attempt.order["paymentStatus"] == "paid"


@pytest.mark.asyncio
async def test_declined_attempt_keeps_message(mock_api):
    handler = lambda request: httpx.Response(200, json={"success": False, "message": "card declined"})
    async with mock_api(handler) as api:
        attempt = await PaymentSimulator(api).simulate(7, "upi", {"upiId": "jane@okbank"})
    assert not attempt.success
    assert attempt.transaction_id is None
    assert attempt.error_message == "card declined"


@pytest.mark.asyncio
async def test_transport_error_becomes_failed_attempt(mock_api):
    def handler(request):
        raise httpx.ConnectTimeout("slow", request=request)

    async with mock_api(handler) as api:
        attempt = await PaymentSimulator(api).simulate(7, "wallet", {})
    assert not attempt.success
    assert attempt.phase is PaymentPhase.FAILED
    assert attempt.error_message == "The request timed out. Please try again."


@pytest.mark.asyncio
async def test_cash_is_never_simulated(mock_api):
    calls = []
    async with mock_api(lambda request: calls.append(request) or httpx.Response(200, json={})) as api:
        with pytest.raises(UnsupportedPaymentMethod):
            await PaymentSimulator(api).simulate(7, "cash", {})
    assert calls == []


@pytest.mark.asyncio
async def test_pacer_holds_each_phase():
    slept = []

    async def fake_sleep(seconds):
        slept.append(seconds)

    pacer = PhasePacer(success_seconds=2.0, failure_seconds=3.0, sleep=fake_sleep)
    await pacer.hold(PaymentPhase.PROCESSING)
    await pacer.hold(PaymentPhase.SUCCESS)
    await pacer.hold(PaymentPhase.FAILED)
    assert slept == [2.0, 3.0]


@pytest.mark.asyncio
async def test_disabled_pacer_does_not_sleep():
    slept = []

    async def fake_sleep(seconds):
        slept.append(seconds)

    await PhasePacer(enabled=False, sleep=fake_sleep).hold(PaymentPhase.FAILED)
    assert slept == []
