"""
Unit tests for payment providers and the Payment Service (reconciler).
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from conftest import RESTAURANT_ID
from core.exceptions import (
    ConflictError,
    InternalError,
    NotFoundError,
    ProviderNotConfiguredError,
    UnauthorizedError,
    ValidationError,
)
from models.order import OrderStatus
from models.payment import PaymentStatus
from services.payment_providers import (
    KakaoPayProvider,
    NaverPayProvider,
    PaymentProviderRegistry,
)
from services.payment_service import PaymentService


NAVER_SECRET = "naver-secret"


# Fixtures

@pytest.fixture
def http_session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def naverpay(http_session):
    return NaverPayProvider("client-id", NAVER_SECRET, "https://naver.test", session=http_session)


@pytest.fixture
def kakaopay(http_session):
    return KakaoPayProvider("TC0ONETIME", "kakao-secret", "https://kakao.test", session=http_session)


@pytest.fixture
def payment_service(store, naverpay, kakaopay):
    return PaymentService(store, PaymentProviderRegistry([naverpay, kakaopay]))


def _json_response(body, status_code=200):
    response = MagicMock()
    response.json.return_value = body
    response.status_code = status_code
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code}")
    return response


def naver_callback(naverpay, order_id, state="SUCCESS", amount=10000, sign=True):
    body = {
        "merchantPayKey": order_id,
        "paymentId": "naver-txn-1",
        "totalPayAmount": amount,
        "admissionState": state,
        "admissionYmdt": "20261019101530",
    }
    headers = {}
    if sign:
        headers["X-NaverPay-Signature"] = naverpay.sign(
            body["paymentId"], body["merchantPayKey"], body["admissionYmdt"]
        )
    return json.dumps(body).encode("utf-8"), headers


def _row(store, order_id):
    return store.get("orders", {"restaurantId": RESTAURANT_ID, "orderId": order_id})


class TestNaverPaySignature:
    """Test HMAC verification of NaverPay webhooks."""

    def test_valid_signature(self, naverpay):
        raw, headers = naver_callback(naverpay, "order-1")
        callback = naverpay.parse_callback(json.loads(raw), headers)
        assert naverpay.verify_callback(callback)

    def test_tampered_payment_id_fails(self, naverpay):
        raw, headers = naver_callback(naverpay, "order-1")
        body = json.loads(raw)
        body["paymentId"] = "other-txn"
        assert not naverpay.verify_callback(naverpay.parse_callback(body, headers))

    def test_missing_signature_fails(self, naverpay):
        raw, headers = naver_callback(naverpay, "order-1", sign=False)
        assert not naverpay.verify_callback(naverpay.parse_callback(json.loads(raw), headers))

    def test_missing_order_id(self, naverpay):
        with pytest.raises(ValidationError):
            naverpay.parse_callback({"paymentId": "x"}, {})

    def test_non_ascii_signature_fails(self, naverpay):
        raw, _ = naver_callback(naverpay, "order-1", sign=False)
        callback = naverpay.parse_callback(json.loads(raw), {"X-NaverPay-Signature": "caf\xe9"})
        assert not naverpay.verify_callback(callback)

    @pytest.mark.parametrize("order_id", [12345, ["order-1"], {"id": "order-1"}])
    def test_non_string_order_id(self, naverpay, order_id):
        with pytest.raises(ValidationError):
            naverpay.parse_callback({"merchantPayKey": order_id, "paymentId": "x"}, {})


class TestKakaoPayVerification:
    """KakaoPay is verified by asking its order-status API."""

    def test_confirmed_by_status_api(self, kakaopay, http_session):
        http_session.post.return_value = _json_response({"status": "SUCCESS_PAYMENT"})
        callback = kakaopay.parse_callback(
            {"partner_order_id": "order-1", "tid": "T1", "amount": {"total": 10000}, "approved_at": "now"},
            {},
        )

        assert callback.status is PaymentStatus.SUCCESS
        assert callback.amount == 10000
        assert kakaopay.verify_callback(callback)
        url = http_session.post.call_args[0][0]
        assert url == "https://kakao.test/v1/payment/order"
        assert http_session.post.call_args[1]["data"]["tid"] == "T1"

    def test_other_status_rejected(self, kakaopay, http_session):
        http_session.post.return_value = _json_response({"status": "CANCEL_PAYMENT"})
        callback = kakaopay.parse_callback({"partner_order_id": "order-1", "tid": "T1"}, {})
        assert not kakaopay.verify_callback(callback)

    def test_status_api_error_rejected(self, kakaopay, http_session):
        http_session.post.side_effect = requests.ConnectionError("down")
        callback = kakaopay.parse_callback({"partner_order_id": "order-1", "tid": "T1"}, {})
        assert not kakaopay.verify_callback(callback)

    def test_cancel_payment_failure_is_internal_error(self, kakaopay, http_session):
        http_session.post.return_value = _json_response({}, status_code=500)
        with pytest.raises(InternalError):
            kakaopay.cancel_payment("T1", 500)

    def test_non_string_order_id(self, kakaopay):
        with pytest.raises(ValidationError):
            kakaopay.parse_callback({"partner_order_id": 42, "tid": "T1"}, {})


class TestProviderRegistry:
    """Test provider resolution from configuration."""

    def test_only_configured_providers(self):
        registry = PaymentProviderRegistry.from_config({
            "NAVERPAY_CLIENT_ID": "id",
            "NAVERPAY_CLIENT_SECRET": "secret",
        })
        assert registry.available == ["naverpay"]
        with pytest.raises(ProviderNotConfiguredError):
            registry.get("kakaopay")

    def test_not_configured_is_not_found(self):
        with pytest.raises(NotFoundError):
            PaymentProviderRegistry([]).get("naverpay")


class TestReconcile:
    """Test callback reconciliation against orders."""

    def test_success_marks_paid(self, payment_service, naverpay, store, place_order):
        order_id = place_order()
        raw, headers = naver_callback(naverpay, order_id)

        result = payment_service.handle_callback("naverpay", raw, headers)

        assert result == {"success": True, "orderId": order_id, "status": "PAID"}
        row = _row(store, order_id)
        assert row["status"] == "PAID"
        assert "expiresAt" not in row
        assert row["paymentInfo"]["method"] == "naverpay"
        assert row["paymentInfo"]["transactionId"] == "naver-txn-1"
        assert row["paymentInfo"]["amount"] == 10000

    def test_duplicate_success_conflicts(self, payment_service, naverpay, store, place_order):
        order_id = place_order()
        raw, headers = naver_callback(naverpay, order_id)
        payment_service.handle_callback("naverpay", raw, headers)
        after_first = _row(store, order_id)

        with pytest.raises(ConflictError):
            payment_service.handle_callback("naverpay", raw, headers)
        assert _row(store, order_id) == after_first

    def test_success_after_cancel_conflicts(self, payment_service, naverpay, store, place_order, force_state):
        order_id = place_order()
        force_state(order_id, OrderStatus.CANCELLED)
        raw, headers = naver_callback(naverpay, order_id)

        with pytest.raises(ConflictError):
            payment_service.handle_callback("naverpay", raw, headers)
        assert _row(store, order_id)["status"] == "CANCELLED"

    def test_failure_recorded_status_unchanged(self, payment_service, naverpay, store, place_order):
        order_id = place_order()
        raw, headers = naver_callback(naverpay, order_id, state="FAILED")

        result = payment_service.handle_callback("naverpay", raw, headers)

        assert result["status"] == "CREATED"
        row = _row(store, order_id)
        assert row["status"] == "CREATED"
        assert "expiresAt" in row
        assert row["paymentFailureInfo"]["reason"] == "Payment processing failed"
        assert row["paymentFailureInfo"]["provider"] == "naverpay"

    def test_bad_signature_touches_nothing(self, payment_service, naverpay, store, place_order):
        order_id = place_order()
        raw, headers = naver_callback(naverpay, order_id)
        headers["X-NaverPay-Signature"] = "0" * 64
        before = _row(store, order_id)

        with pytest.raises(UnauthorizedError):
            payment_service.handle_callback("naverpay", raw, headers)
        assert _row(store, order_id) == before

    def test_non_ascii_signature_is_unauthorized(self, payment_service, naverpay, store, place_order):
        order_id = place_order()
        raw, headers = naver_callback(naverpay, order_id)
        headers["X-NaverPay-Signature"] = "caf\xe9"

        with pytest.raises(UnauthorizedError):
            payment_service.handle_callback("naverpay", raw, headers)
        assert _row(store, order_id)["status"] == "CREATED"

    def test_numeric_order_id_is_validation_error(self, payment_service, naverpay):
        body = {"merchantPayKey": 12345, "paymentId": "naver-txn-1", "admissionState": "SUCCESS"}
        with pytest.raises(ValidationError):
            payment_service.handle_callback("naverpay", json.dumps(body).encode("utf-8"), {})

    def test_unknown_order(self, payment_service, naverpay):
        raw, headers = naver_callback(naverpay, "no-such-order")
        with pytest.raises(NotFoundError):
            payment_service.handle_callback("naverpay", raw, headers)

    def test_unknown_provider(self, payment_service):
        with pytest.raises(ProviderNotConfiguredError):
            payment_service.handle_callback("paypal", b"{}", {})

    def test_malformed_body(self, payment_service):
        with pytest.raises(ValidationError):
            payment_service.handle_callback("naverpay", b"not json", {})

    def test_duplicate_order_id_is_internal_error(self, payment_service, naverpay, store, place_order):
        order_id = place_order()
        clone = dict(_row(store, order_id), restaurantId="another-restaurant")
        store.put("orders", clone)
        raw, headers = naver_callback(naverpay, order_id)

        with pytest.raises(InternalError):
            payment_service.handle_callback("naverpay", raw, headers)
