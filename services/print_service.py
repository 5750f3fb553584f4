"""
Print dispatch service with thread-per-job architecture.

A print request is recorded as a PENDING job on the request thread and
returns immediately; delivery to the printer happens on a detached
daemon thread owned by that job. The request path never blocks on
printer I/O.

Thread Safety:
    - FrozenOrder is immutable - safe to pass to the job thread
    - Each job row is written only by the thread that owns it
    - Terminal writes are guarded by status == PENDING

Flow:
    1. Request thread loads the order and writes a PENDING job (attempts 0)
    2. Request thread starts the job thread with order.freeze()
    3. Job thread: up to 3 attempts, sleeping 0s / 15s / 30s before each
    4. Each attempt stamps attempts/lastAttempt, renders the receipt
       and/or kitchen ticket, and sends every payload
    5. SUCCESS with completedAt, or FAILED with the last error message

Usage:
    # At app startup
    print_service = PrintService(store, print_type=PrintType.KITCHEN)

    # On print request (request thread)
    job = print_service.print_order(order_id, restaurant_id)

    # Polling
    status = print_service.get_print_status(job["jobId"], order_id)

    # At app shutdown
    print_service.shutdown()
"""

from __future__ import annotations

import threading
import time
import uuid
from typing import Callable, Dict, Optional, Sequence

from core.exceptions import ConditionFailedError, NotFoundError
from core.store import Attr, Store
from core.timeutil import utc_now_iso
from models.order import FrozenOrder, Order
from models.print_job import PrintJob, PrintJobStatus, PrintType
from modules.escpos import render_payloads
from modules.printer_client import send_to_printer
from logging_config import get_logger, get_job_logger, set_thread_name


# Module logger
logger = get_logger(__name__)

ORDERS = "orders"
POS_JOBS = "pos-jobs"

MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAYS = (0, 15, 30)


class PrintService:
    """
    Records print jobs and delivers them on background threads.

    Attributes:
        print_type: Which payloads every job sends
    """

    def __init__(
        self,
        store: Store,
        print_type: PrintType = PrintType.KITCHEN,
        endpoint: Optional[str] = None,
        timeout_seconds: float = 10.0,
        retry_delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
        ttl_hours: int = 24,
        transport: Optional[Callable[[bytes], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
        background: bool = True,
    ):
        """
        Initialize the print service.

        Args:
            store: Backing store
            print_type: receipt, kitchen or both
            endpoint: Printer bridge URL; None logs payloads instead
            timeout_seconds: HTTP timeout per payload
            retry_delays: Seconds to wait before attempts 1..3
            ttl_hours: Lifetime of job records
            transport: Sends one payload; defaults to an HTTP POST to endpoint
            sleep: Used for the backoff waits
            background: Dispatch on a job thread (False runs inline)
        """
        self._store = store
        self.print_type = print_type
        self._retry_delays = tuple(retry_delays) or DEFAULT_RETRY_DELAYS
        self._ttl_hours = ttl_hours
        self._transport = transport or (
            lambda payload: send_to_printer(payload, endpoint, timeout_seconds)
        )
        self._sleep = sleep
        self._background = background

        # Track active job threads for cleanup
        self._active_threads: Dict[str, threading.Thread] = {}
        self._threads_lock = threading.Lock()

        logger.info(
            f"PrintService initialized (type={print_type.value}, "
            f"endpoint={'set' if endpoint else 'log only'})"
        )

    # =========================================================================
    # REQUEST PATH
    # =========================================================================

    def print_order(self, order_id: str, restaurant_id: str) -> Dict[str, str]:
        """
        Record a PENDING print job and start delivering it.

        Returns immediately with {jobId, status, createdAt}.

        Raises:
            NotFoundError: If the order does not exist
        """
        order = self._load_order(order_id, restaurant_id)

        job = PrintJob.create_pending(str(uuid.uuid4()), order_id, self._ttl_hours)
        self._store.put(POS_JOBS, job.to_dict(), condition=Attr("jobId").not_exists())
        logger.info(f"Print job {job.job_id[:8]} queued for order {order_id[:8]}")

        self._start(job.job_id, order.freeze())

        return {
            "jobId": job.job_id,
            "status": job.status.value,
            "createdAt": job.created_at,
        }

    def reprint_order(self, order_id: str, restaurant_id: str) -> Dict[str, str]:
        """
        Print an order again as a brand-new job.

        Terminal jobs are never retried in place.
        """
        logger.info(f"Reprint requested for order {order_id[:8]}")
        return self.print_order(order_id, restaurant_id)

    def get_print_status(self, job_id: str, order_id: str) -> Dict[str, str]:
        """
        Raises:
            NotFoundError: If the job does not exist for this order
        """
        row = self._store.get(POS_JOBS, {"orderId": order_id, "jobId": job_id})
        if row is None:
            raise NotFoundError("Print job not found", {"job_id": job_id, "order_id": order_id})
        return PrintJob.from_dict(row).to_status()

    def is_job_pending(self, job_id: str) -> bool:
        with self._threads_lock:
            thread = self._active_threads.get(job_id)
            return thread is not None and thread.is_alive()

    def shutdown(self, timeout_per_thread: float = 5.0) -> None:
        """
        Wait for active job threads to finish.

        Call this during application shutdown.
        """
        with self._threads_lock:
            active = list(self._active_threads.items())

        if not active:
            logger.info("No active print threads to wait for")
            return

        logger.info(f"Waiting for {len(active)} print threads to complete...")
        for job_id, thread in active:
            if thread.is_alive():
                thread.join(timeout=timeout_per_thread)
                if thread.is_alive():
                    logger.warning(f"Print thread {job_id[:8]} did not complete in time")

        logger.info("Print service shutdown complete")

    def _load_order(self, order_id: str, restaurant_id: str) -> Order:
        row = self._store.get(ORDERS, {"restaurantId": restaurant_id, "orderId": order_id})
        if row is None:
            raise NotFoundError("Order not found", {"order_id": order_id})
        return Order.from_dict(row)

    def _start(self, job_id: str, frozen_order: FrozenOrder) -> None:
        if not self._background:
            self.dispatch(job_id, frozen_order)
            return

        thread = threading.Thread(
            target=self._job_thread_main,
            args=(job_id, frozen_order),
            name=f"Print-{job_id[:8]}",
            daemon=True,
        )
        with self._threads_lock:
            self._active_threads[job_id] = thread
        thread.start()

    # =========================================================================
    # JOB THREAD
    # =========================================================================

    def _job_thread_main(self, job_id: str, frozen_order: FrozenOrder) -> None:
        set_thread_name(f"Print-{job_id[:8]}")
        job_logger = get_job_logger(job_id, frozen_order.short_id)
        try:
            self.dispatch(job_id, frozen_order)
        except Exception as e:
            job_logger.error(f"Print thread crashed: {e}", exc_info=True)
        finally:
            with self._threads_lock:
                self._active_threads.pop(job_id, None)
            job_logger.debug("Print thread exiting")

    def dispatch(self, job_id: str, frozen_order: FrozenOrder) -> PrintJobStatus:
        """
        Deliver a job with bounded retries.

        A store error while stamping or finishing an attempt counts as a
        failed attempt, the same as a printer error.

        Returns:
            The terminal status recorded for the job
        """
        job_logger = get_job_logger(job_id, frozen_order.short_id)
        key = {"orderId": frozen_order.order_id, "jobId": job_id}
        last_error = "Unknown error"

        for attempt in range(1, MAX_ATTEMPTS + 1):
            delay = self._retry_delays[min(attempt, len(self._retry_delays)) - 1]
            if delay > 0:
                job_logger.info(f"Waiting {delay}s before attempt {attempt}/{MAX_ATTEMPTS}")
                self._sleep(delay)

            try:
                self._store.update(
                    POS_JOBS,
                    key,
                    {"attempts": attempt, "lastAttempt": utc_now_iso()},
                    condition=Attr("status").eq(PrintJobStatus.PENDING.value),
                )
                for payload in render_payloads(frozen_order, self.print_type):
                    self._transport(payload)
                status = self._finish(key, job_logger, {
                    "status": PrintJobStatus.SUCCESS.value,
                    "completedAt": utc_now_iso(),
                })
            except ConditionFailedError:
                job_logger.info("Job is no longer PENDING, stopping")
                return self._current_status(key)
            except Exception as e:
                last_error = str(e) or type(e).__name__
                job_logger.warning(f"Attempt {attempt}/{MAX_ATTEMPTS} failed: {last_error}")
                continue

            job_logger.info(f"Printed order {frozen_order.short_id} on attempt {attempt}")
            return status

        job_logger.error(f"Print failed after {MAX_ATTEMPTS} attempts: {last_error}")
        try:
            return self._finish(key, job_logger, {
                "status": PrintJobStatus.FAILED.value,
                "errorMessage": last_error,
            })
        except Exception as e:
            job_logger.error(f"Could not record FAILED status: {e}", exc_info=True)
            return PrintJobStatus.FAILED

    def _finish(self, key, job_logger, changes) -> PrintJobStatus:
        try:
            self._store.update(
                POS_JOBS,
                key,
                changes,
                condition=Attr("status").eq(PrintJobStatus.PENDING.value),
            )
        except ConditionFailedError:
            job_logger.info("Job already finished elsewhere")
            return self._current_status(key)
        return PrintJobStatus(changes["status"])

    def _current_status(self, key) -> PrintJobStatus:
        row = self._store.get(POS_JOBS, key) or {}
        return PrintJobStatus(row.get("status", PrintJobStatus.PENDING.value))
