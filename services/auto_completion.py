"""
Auto-completion sweep.

Orders left READY past the pickup window are force-completed. The sweep
runs from a scheduler (the in-process AutoCompletionScheduler thread or
the `flask auto-complete` command under an external cron) and must be safe
to run concurrently with itself and with owner actions.

Per candidate:
    1. Re-read the row; skip unless still READY and still stale
    2. READY -> COMPLETED guarded by status == READY, stamp autoCompletedAt
    3. Notify the customer; a notifier failure never undoes step 2

A lost guard means another actor moved the order first and is counted as
skipped, not as an error. One candidate failing never aborts the batch;
only a failure of the initial query propagates.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional

from core.exceptions import ConditionFailedError
from core.store import Attr, Store
from core.timeutil import parse_timestamp, to_iso, utc_now, utc_now_iso
from models.order import Order, OrderStatus
from services.notifier import Notifier, LogNotifier
from logging_config import get_logger, set_thread_name


# Module logger
logger = get_logger(__name__)

ORDERS = "orders"


@dataclass
class SweepReport:
    """Outcome counts of one sweep run."""

    candidates: int = 0
    completed: int = 0
    skipped: int = 0
    errors: int = 0
    completed_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidates": self.candidates,
            "completed": self.completed,
            "skipped": self.skipped,
            "errors": self.errors,
        }


class AutoCompletionSweeper:
    """Completes READY orders whose pickup window has passed."""

    # Per-candidate outcomes
    COMPLETED = "completed"
    SKIPPED = "skipped"
    ERROR = "error"

    def __init__(
        self,
        store: Store,
        notifier: Optional[Notifier] = None,
        auto_complete_minutes: int = 30,
        max_workers: int = 8,
    ):
        self._store = store
        self._notifier = notifier or LogNotifier()
        self.auto_complete_minutes = auto_complete_minutes
        self._max_workers = max(1, max_workers)

    def run_once(self) -> SweepReport:
        """
        Run one sweep.

        Returns:
            SweepReport with candidate/completed/skipped/error counts

        Raises:
            Exception: Whatever the store raises for the candidate query
        """
        cutoff = utc_now() - timedelta(minutes=self.auto_complete_minutes)
        rows = self._store.query(
            ORDERS,
            {"status": OrderStatus.READY.value},
            index="status-index",
            filter=Attr("updatedAt").lt(to_iso(cutoff)),
        )

        report = SweepReport(candidates=len(rows))
        if not rows:
            logger.debug("Auto-completion sweep: no stale READY orders")
            return report

        logger.info(f"Auto-completion sweep: {len(rows)} candidates")

        with ThreadPoolExecutor(
            max_workers=min(self._max_workers, len(rows)),
            thread_name_prefix="AutoComplete-worker",
        ) as pool:
            outcomes = list(pool.map(lambda row: self._complete_candidate(row, cutoff), rows))

        for row, outcome in zip(rows, outcomes):
            if outcome == self.COMPLETED:
                report.completed += 1
                report.completed_ids.append(row["orderId"])
            elif outcome == self.SKIPPED:
                report.skipped += 1
            else:
                report.errors += 1

        logger.info(
            f"Auto-completion sweep complete: {report.completed} completed, "
            f"{report.skipped} skipped, {report.errors} errors"
        )
        return report

    def _complete_candidate(self, candidate: Dict[str, Any], cutoff) -> str:
        """Process one candidate in isolation; never raises."""
        order_id = candidate.get("orderId", "")
        try:
            key = {"restaurantId": candidate["restaurantId"], "orderId": order_id}

            # The query result may already be stale
            current = self._store.get(ORDERS, key)
            if current is None or current.get("status") != OrderStatus.READY.value:
                logger.info(f"Order {order_id[:8]} no longer READY, skipping")
                return self.SKIPPED
            updated_at = parse_timestamp(current.get("updatedAt"))
            if updated_at is not None and updated_at >= cutoff:
                logger.info(f"Order {order_id[:8]} touched since query, skipping")
                return self.SKIPPED

            now = utc_now_iso()
            try:
                row = self._store.update(
                    ORDERS,
                    key,
                    {
                        "status": OrderStatus.COMPLETED.value,
                        "updatedAt": now,
                        "autoCompletedAt": now,
                    },
                    condition=Attr("status").eq(OrderStatus.READY.value),
                )
            except ConditionFailedError:
                logger.info(f"Order {order_id[:8]} moved by another actor, skipping")
                return self.SKIPPED

            logger.info(f"Order {order_id[:8]} auto-completed")
        except Exception as e:
            logger.error(f"Auto-completion failed for order {order_id[:8]}: {e}", exc_info=True)
            return self.ERROR

        try:
            self._notifier.order_completed(Order.from_dict(row))
        except Exception as e:
            logger.error(f"Completion notification failed for order {order_id[:8]}: {e}")

        return self.COMPLETED


class AutoCompletionScheduler:
    """
    Runs the sweep on a background thread at a fixed interval.

    The thread sweeps immediately, then every interval_seconds until
    stop() is called. Safe to start/stop multiple times.
    """

    def __init__(self, sweeper: AutoCompletionSweeper, interval_seconds: float = 60.0):
        self._sweeper = sweeper
        self._interval = interval_seconds

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._is_running = False
        self._consecutive_failures = 0

    @property
    def is_running(self) -> bool:
        return self._is_running

    def start(self) -> None:
        if self._is_running:
            logger.warning("Auto-completion scheduler already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="AutoComplete",
            daemon=True,
        )
        self._is_running = True
        self._thread.start()
        logger.info(f"Auto-completion scheduler started (every {self._interval}s)")

    def stop(self) -> None:
        if not self._is_running:
            return

        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)
            if self._thread.is_alive():
                logger.warning("Auto-completion thread did not stop cleanly")

        self._is_running = False
        self._thread = None
        logger.info("Auto-completion scheduler stopped")

    def _run_loop(self) -> None:
        set_thread_name("AutoComplete")
        logger.info("Auto-completion loop starting")

        self._tick()
        while not self._stop_event.wait(timeout=self._interval):
            self._tick()

        logger.info("Auto-completion loop exiting")

    def _tick(self) -> None:
        try:
            self._sweeper.run_once()
        except Exception as e:
            self._consecutive_failures += 1
            logger.error(
                f"Auto-completion sweep failed ({self._consecutive_failures} in a row): {e}"
            )
            return

        if self._consecutive_failures:
            logger.info(f"Auto-completion recovered after {self._consecutive_failures} failures")
        self._consecutive_failures = 0
