"""
Print job data models.

A print job tracks one attempt-set of delivering an order's receipt
and/or kitchen ticket to the restaurant printer. It is created PENDING
on the request thread and mutated only by the dispatch thread that owns
it. Once SUCCESS or FAILED it never returns to PENDING; a reprint is a
new job.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional

from core.timeutil import epoch_seconds_from_now, utc_now_iso


class PrintJobStatus(Enum):
    """
    Status of a print job.

    Lifecycle:
        PENDING -> (SUCCESS | FAILED)
    """

    PENDING = "PENDING"
    """Job recorded; dispatch thread is attempting delivery."""

    SUCCESS = "SUCCESS"
    """Every required payload reached the printer."""

    FAILED = "FAILED"
    """All attempts exhausted; errorMessage holds the last failure."""


class PrintType(Enum):
    """Which payloads a print job sends."""

    RECEIPT = "receipt"
    KITCHEN = "kitchen"
    BOTH = "both"

    @property
    def includes_receipt(self) -> bool:
        return self in (PrintType.RECEIPT, PrintType.BOTH)

    @property
    def includes_kitchen(self) -> bool:
        return self in (PrintType.KITCHEN, PrintType.BOTH)


@dataclass
class PrintJob:
    """A print job as stored in the pos-jobs collection."""

    job_id: str
    """Unique job identifier (UUID)."""

    order_id: str
    """Order being printed."""

    status: PrintJobStatus
    """Current job status."""

    created_at: str
    """When the print was requested."""

    expires_at: int
    """TTL (epoch seconds); job records are housekeeping, not history."""

    attempts: int = 0
    """Number of delivery attempts started so far."""

    last_attempt: Optional[str] = None
    """When the most recent attempt started."""

    completed_at: Optional[str] = None
    """When the job reached SUCCESS."""

    error_message: Optional[str] = None
    """Last failure, recorded when the job reaches FAILED."""

    @property
    def key(self) -> Dict[str, str]:
        return {"orderId": self.order_id, "jobId": self.job_id}

    @classmethod
    def create_pending(cls, job_id: str, order_id: str, ttl_hours: int = 24) -> "PrintJob":
        """
        Create a new PENDING job with no attempts.

        Args:
            job_id: Fresh unique job identifier
            order_id: Order to print
            ttl_hours: Lifetime of the job record

        Returns:
            PrintJob in PENDING status
        """
        return cls(
            job_id=job_id,
            order_id=order_id,
            status=PrintJobStatus.PENDING,
            created_at=utc_now_iso(),
            expires_at=epoch_seconds_from_now(hours=ttl_hours),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "jobId": self.job_id,
            "orderId": self.order_id,
            "status": self.status.value,
            "createdAt": self.created_at,
            "attempts": self.attempts,
            "expiresAt": self.expires_at,
        }
        for name, value in (
            ("lastAttempt", self.last_attempt),
            ("completedAt", self.completed_at),
            ("errorMessage", self.error_message),
        ):
            if value is not None:
                data[name] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PrintJob":
        return cls(
            job_id=data["jobId"],
            order_id=data["orderId"],
            status=PrintJobStatus(data.get("status", PrintJobStatus.PENDING.value)),
            created_at=data.get("createdAt", ""),
            expires_at=data.get("expiresAt", 0),
            attempts=data.get("attempts", 0),
            last_attempt=data.get("lastAttempt"),
            completed_at=data.get("completedAt"),
            error_message=data.get("errorMessage"),
        )

    def to_status(self) -> Dict[str, Any]:
        """Projection returned by getPrintStatus."""
        status: Dict[str, Any] = {
            "jobId": self.job_id,
            "status": self.status.value,
            "createdAt": self.created_at,
        }
        if self.completed_at:
            status["completedAt"] = self.completed_at
        if self.error_message:
            status["errorMessage"] = self.error_message
        return status
