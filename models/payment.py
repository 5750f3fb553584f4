"""
Payment data models.

Provider webhooks arrive in provider-specific shapes and are normalized
into a PaymentCallback before verification and reconciliation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional


class PaymentStatus(Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass(frozen=True)
class PaymentCallback:
    """Provider callback in normalized form."""

    order_id: str
    transaction_id: str
    amount: float
    status: PaymentStatus
    timestamp: str
    signature: str
    provider: str
    raw_data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentRequest:
    order_id: str
    amount: float
    product_name: str
    return_url: str
    cancel_url: str
    customer_phone: Optional[str] = None


@dataclass(frozen=True)
class PaymentResponse:
    payment_url: str
    transaction_id: str
    expires_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "paymentUrl": self.payment_url,
            "transactionId": self.transaction_id,
            "expiresAt": self.expires_at,
        }


@dataclass(frozen=True)
class RefundResult:
    refund_id: str
    amount: float
    status: str
    processed_at: str
