"""
Payment provider clients.

Each provider is a narrow client over an external payment gateway:

    create_payment(request)          -> PaymentResponse (redirect URL)
    verify_callback(callback)        -> bool (authenticity of a webhook)
    cancel_payment(txn_id, amount)   -> RefundResult
    parse_callback(body, headers)    -> PaymentCallback (normalize raw webhook)

Authenticity differs per provider:
    - NaverPay signs webhooks: HMAC-SHA256 over
      paymentId + merchantPayKey + admissionYmdt, keyed by the client secret.
    - KakaoPay does not sign webhooks: the callback is confirmed by asking
      KakaoPay's order-status API whether the payment really succeeded.

Providers are resolved once from configuration into a PaymentProviderRegistry.
Asking the registry for a provider without credentials raises
ProviderNotConfiguredError.
"""

from __future__ import annotations

import hashlib
import hmac
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional

import requests

from core.exceptions import InternalError, ProviderNotConfiguredError, ValidationError
from core.timeutil import to_iso, utc_now, utc_now_iso
from models.payment import (
    PaymentCallback,
    PaymentRequest,
    PaymentResponse,
    PaymentStatus,
    RefundResult,
)
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

PAYMENT_WINDOW = timedelta(minutes=30)


class PaymentProvider:
    """Base class for provider clients."""

    name: str = ""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = timeout

    def create_payment(self, request: PaymentRequest) -> PaymentResponse:
        raise NotImplementedError

    def verify_callback(self, callback: PaymentCallback) -> bool:
        raise NotImplementedError

    def cancel_payment(self, transaction_id: str, amount: float) -> RefundResult:
        raise NotImplementedError

    def parse_callback(self, body: Dict[str, Any], headers: Mapping[str, str]) -> PaymentCallback:
        raise NotImplementedError

    @staticmethod
    def _payment_expiry() -> str:
        return to_iso(utc_now() + PAYMENT_WINDOW)

    @staticmethod
    def _callback_order_id(body: Dict[str, Any], field: str) -> str:
        order_id = body.get(field)
        if not order_id:
            raise ValidationError(f"Order ID ({field}) is required")
        if not isinstance(order_id, str):
            raise ValidationError(f"Order ID ({field}) must be a string")
        return order_id


class NaverPayProvider(PaymentProvider):
    """NaverPay partner API client."""

    name = "naverpay"
    SIGNATURE_HEADER = "X-NaverPay-Signature"

    def __init__(self, client_id: str, client_secret: str, base_url: str, **kwargs):
        super().__init__(base_url, **kwargs)
        self._client_id = client_id
        self._client_secret = client_secret

    def _headers(self) -> Dict[str, str]:
        return {
            "X-Naver-Client-Id": self._client_id,
            "X-Naver-Client-Secret": self._client_secret,
            "Content-Type": "application/json",
        }

    def create_payment(self, request: PaymentRequest) -> PaymentResponse:
        payload = {
            "merchantPayKey": request.order_id,
            "productName": request.product_name,
            "totalPayAmount": request.amount,
            "returnUrl": request.return_url,
            "merchantUserKey": request.customer_phone or request.order_id,
        }
        try:
            response = self._session.post(
                f"{self.base_url}/payments/v2.0/reserve",
                json=payload,
                headers=self._headers(),
                timeout=self._timeout,
            )
            response.raise_for_status()
            body = response.json()["body"]
            if not isinstance(body, dict):
                raise ValueError("Unexpected reserve response body")
        except (requests.RequestException, KeyError, TypeError, ValueError) as e:
            logger.error(f"NaverPay createPayment error: {e}")
            raise InternalError("Failed to create NaverPay payment", {"order_id": request.order_id})

        return PaymentResponse(
            payment_url=body["paymentUrl"],
            transaction_id=body["paymentId"],
            expires_at=self._payment_expiry(),
        )

    def sign(self, payment_id: str, merchant_pay_key: str, admission_ymdt: str) -> str:
        message = f"{payment_id}{merchant_pay_key}{admission_ymdt}"
        return hmac.new(
            self._client_secret.encode("utf-8"),
            message.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def verify_callback(self, callback: PaymentCallback) -> bool:
        raw = callback.raw_data
        expected = self.sign(
            str(raw.get("paymentId", "")),
            str(raw.get("merchantPayKey", "")),
            str(raw.get("admissionYmdt", "")),
        )
        signature = str(callback.signature or "").encode("utf-8")
        return bool(signature) and hmac.compare_digest(signature, expected.encode("utf-8"))

    def cancel_payment(self, transaction_id: str, amount: float) -> RefundResult:
        payload = {
            "paymentId": transaction_id,
            "cancelAmount": amount,
            "cancelReason": "Customer requested cancellation",
        }
        try:
            response = self._session.post(
                f"{self.base_url}/payments/v2.0/cancel",
                json=payload,
                headers=self._headers(),
                timeout=self._timeout,
            )
            response.raise_for_status()
            body = response.json()["body"]
            if not isinstance(body, dict):
                raise ValueError("Unexpected cancel response body")
        except (requests.RequestException, KeyError, TypeError, ValueError) as e:
            logger.error(f"NaverPay cancelPayment error: {e}")
            raise InternalError("Failed to cancel NaverPay payment", {"transaction_id": transaction_id})

        return RefundResult(
            refund_id=body.get("payHistId", ""),
            amount=body.get("cancelAmount", amount),
            status="SUCCESS" if body.get("admissionState") == "SUCCESS" else "FAILED",
            processed_at=utc_now_iso(),
        )

    def parse_callback(self, body: Dict[str, Any], headers: Mapping[str, str]) -> PaymentCallback:
        order_id = self._callback_order_id(body, "merchantPayKey")

        return PaymentCallback(
            order_id=order_id,
            transaction_id=body.get("paymentId", ""),
            amount=body.get("totalPayAmount") or 0,
            status=PaymentStatus.SUCCESS if body.get("admissionState") == "SUCCESS" else PaymentStatus.FAILED,
            timestamp=body.get("admissionYmdt") or utc_now_iso(),
            signature=headers.get(self.SIGNATURE_HEADER, ""),
            provider=self.name,
            raw_data=body,
        )


class KakaoPayProvider(PaymentProvider):
    """KakaoPay online payment API client."""

    name = "kakaopay"

    def __init__(self, cid: str, secret_key: str, base_url: str, **kwargs):
        super().__init__(base_url, **kwargs)
        self._cid = cid
        self._secret_key = secret_key

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"KakaoAK {self._secret_key}",
            "Content-Type": "application/x-www-form-urlencoded",
        }

    def _post_form(self, path: str, form: Dict[str, str]) -> Dict[str, Any]:
        response = self._session.post(
            f"{self.base_url}{path}",
            data=form,
            headers=self._headers(),
            timeout=self._timeout,
        )
        response.raise_for_status()
        return response.json()

    def create_payment(self, request: PaymentRequest) -> PaymentResponse:
        form = {
            "cid": self._cid,
            "partner_order_id": request.order_id,
            "partner_user_id": request.customer_phone or request.order_id,
            "item_name": request.product_name,
            "quantity": "1",
            "total_amount": str(request.amount),
            "tax_free_amount": "0",
            "approval_url": request.return_url,
            "cancel_url": request.cancel_url,
            "fail_url": request.cancel_url,
        }
        try:
            body = self._post_form("/v1/payment/ready", form)
            return PaymentResponse(
                payment_url=body["next_redirect_pc_url"],
                transaction_id=body["tid"],
                expires_at=self._payment_expiry(),
            )
        except (requests.RequestException, KeyError, TypeError, ValueError) as e:
            logger.error(f"KakaoPay createPayment error: {e}")
            raise InternalError("Failed to create KakaoPay payment", {"order_id": request.order_id})

    def verify_callback(self, callback: PaymentCallback) -> bool:
        form = {
            "cid": self._cid,
            "tid": str(callback.raw_data.get("tid", "")),
            "partner_order_id": callback.order_id,
            "partner_user_id": str(callback.raw_data.get("partner_user_id") or callback.order_id),
        }
        try:
            body = self._post_form("/v1/payment/order", form)
        except (requests.RequestException, ValueError) as e:
            logger.error(f"KakaoPay verifyCallback error: {e}")
            return False
        return body.get("status") == "SUCCESS_PAYMENT"

    def cancel_payment(self, transaction_id: str, amount: float) -> RefundResult:
        form = {
            "cid": self._cid,
            "tid": transaction_id,
            "cancel_amount": str(amount),
            "cancel_tax_free_amount": "0",
        }
        try:
            body = self._post_form("/v1/payment/cancel", form)
            return RefundResult(
                refund_id=body["tid"],
                amount=body["canceled_amount"]["total"],
                status="SUCCESS",
                processed_at=body.get("canceled_at") or utc_now_iso(),
            )
        except (requests.RequestException, KeyError, TypeError, ValueError) as e:
            logger.error(f"KakaoPay cancelPayment error: {e}")
            raise InternalError("Failed to cancel KakaoPay payment", {"transaction_id": transaction_id})

    def parse_callback(self, body: Dict[str, Any], headers: Mapping[str, str]) -> PaymentCallback:
        order_id = self._callback_order_id(body, "partner_order_id")

        amount = body.get("amount") or {}
        return PaymentCallback(
            order_id=order_id,
            transaction_id=body.get("tid", ""),
            amount=amount.get("total", 0) if isinstance(amount, dict) else 0,
            status=PaymentStatus.SUCCESS if body.get("approved_at") else PaymentStatus.FAILED,
            timestamp=body.get("approved_at") or body.get("created_at") or utc_now_iso(),
            signature="",
            provider=self.name,
            raw_data=body,
        )


class PaymentProviderRegistry:
    """
    Closed table of configured payment providers.

    Built once at startup. A provider whose credentials are missing is
    simply absent, and asking for it raises ProviderNotConfiguredError.
    """

    def __init__(self, providers: Optional[List[PaymentProvider]] = None):
        self._providers: Dict[str, PaymentProvider] = {p.name: p for p in providers or []}

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        session: Optional[requests.Session] = None,
    ) -> "PaymentProviderRegistry":
        """Build providers from NAVERPAY_* / KAKAOPAY_* settings."""
        timeout = float(config.get("PAYMENT_HTTP_TIMEOUT_SECONDS", 10))
        providers: List[PaymentProvider] = []

        if config.get("NAVERPAY_CLIENT_ID") and config.get("NAVERPAY_CLIENT_SECRET"):
            providers.append(NaverPayProvider(
                client_id=config["NAVERPAY_CLIENT_ID"],
                client_secret=config["NAVERPAY_CLIENT_SECRET"],
                base_url=config.get("NAVERPAY_BASE_URL", "https://dev.apis.naver.com/naverpay-partner"),
                session=session,
                timeout=timeout,
            ))

        if config.get("KAKAOPAY_CID") and config.get("KAKAOPAY_SECRET_KEY"):
            providers.append(KakaoPayProvider(
                cid=config["KAKAOPAY_CID"],
                secret_key=config["KAKAOPAY_SECRET_KEY"],
                base_url=config.get("KAKAOPAY_BASE_URL", "https://kapi.kakao.com"),
                session=session,
                timeout=timeout,
            ))

        registry = cls(providers)
        logger.info(f"Payment providers configured: {registry.available or 'none'}")
        return registry

    @property
    def available(self) -> List[str]:
        return sorted(self._providers)

    def get(self, name: str) -> PaymentProvider:
        provider = self._providers.get(name)
        if provider is None:
            raise ProviderNotConfiguredError(name)
        return provider
