"""
Unit tests for the Print Service (print job dispatch).
"""

from unittest.mock import MagicMock

import pytest
import requests

from conftest import RESTAURANT_ID
from core.exceptions import NotFoundError, PrinterError
from models.order import Order
from models.print_job import PrintType
from modules.printer_client import send_to_printer
from services.print_service import PrintService


# Fixtures

@pytest.fixture
def transport():
    return MagicMock()


@pytest.fixture
def sleep():
    return MagicMock()


@pytest.fixture
def print_service(store, transport, sleep):
    return PrintService(
        store,
        print_type=PrintType.KITCHEN,
        transport=transport,
        sleep=sleep,
        background=False,
    )


def _job(store, order_id, job_id):
    return store.get("pos-jobs", {"orderId": order_id, "jobId": job_id})


def _frozen(store, order_id):
    row = store.get("orders", {"restaurantId": RESTAURANT_ID, "orderId": order_id})
    return Order.from_dict(row).freeze()


class TestPrintOrder:
    """Test the request path."""

    def test_success_first_attempt(self, print_service, store, transport, sleep, place_order):
        order_id = place_order()

        result = print_service.print_order(order_id, RESTAURANT_ID)

        assert set(result) == {"jobId", "status", "createdAt"}
        assert result["status"] == "PENDING"
        job = _job(store, order_id, result["jobId"])
        assert job["status"] == "SUCCESS"
        assert job["attempts"] == 1
        assert "completedAt" in job
        assert "errorMessage" not in job
        transport.assert_called_once()
        sleep.assert_not_called()

    def test_missing_order(self, print_service, store):
        with pytest.raises(NotFoundError):
            print_service.print_order("missing", RESTAURANT_ID)
        assert store.scan("pos-jobs") == []

    def test_reprint_creates_new_job(self, print_service, store, place_order):
        order_id = place_order()
        first = print_service.print_order(order_id, RESTAURANT_ID)

        second = print_service.reprint_order(order_id, RESTAURANT_ID)

        assert second["jobId"] != first["jobId"]
        assert len(store.scan("pos-jobs")) == 2

    def test_both_sends_receipt_then_ticket(self, store, transport, sleep, place_order):
        service = PrintService(
            store, print_type=PrintType.BOTH, transport=transport, sleep=sleep, background=False
        )
        service.print_order(place_order(), RESTAURANT_ID)

        payloads = [c[0][0] for c in transport.call_args_list]
        assert len(payloads) == 2
        assert b"ORDER RECEIPT" in payloads[0]
        assert b"KITCHEN TICKET" in payloads[1]


class TestRetries:
    """Test bounded retries and terminal states."""

    def test_three_failures_mark_failed(self, print_service, store, transport, sleep, place_order):
        order_id = place_order()
        transport.side_effect = [
            PrinterError("timeout"),
            PrinterError("paper out"),
            PrinterError("printer offline"),
        ]

        job_id = print_service.print_order(order_id, RESTAURANT_ID)["jobId"]

        job = _job(store, order_id, job_id)
        assert job["status"] == "FAILED"
        assert job["attempts"] == 3
        assert job["errorMessage"] == "printer offline"
        assert "completedAt" not in job
        assert transport.call_count == 3
        assert [c[0][0] for c in sleep.call_args_list] == [15, 30]

    def test_success_on_second_attempt(self, print_service, store, transport, sleep, place_order):
        order_id = place_order()
        transport.side_effect = [PrinterError("busy"), None]

        job_id = print_service.print_order(order_id, RESTAURANT_ID)["jobId"]

        job = _job(store, order_id, job_id)
        assert job["status"] == "SUCCESS"
        assert job["attempts"] == 2
        assert transport.call_count == 2
        sleep.assert_called_once_with(15)

    def test_error_without_message_uses_type_name(self, print_service, store, transport, place_order):
        order_id = place_order()
        transport.side_effect = TimeoutError()

        job_id = print_service.print_order(order_id, RESTAURANT_ID)["jobId"]

        assert _job(store, order_id, job_id)["errorMessage"] == "TimeoutError"

    def test_terminal_job_not_overwritten(self, print_service, store, place_order):
        order_id = place_order()
        job_id = print_service.print_order(order_id, RESTAURANT_ID)["jobId"]
        before = _job(store, order_id, job_id)

        status = print_service.dispatch(job_id, _frozen(store, order_id))

        assert status.value == "SUCCESS"
        assert _job(store, order_id, job_id) == before


def _fail_job_update_once(store, when):
    """Make the next pos-jobs update matching `when` raise a store error."""
    original_update = store.update
    failed = []

    def update(table, key, changes, condition=None, remove=None):
        if table == "pos-jobs" and not failed and when(changes):
            failed.append(changes)
            raise RuntimeError("store throttled")
        return original_update(table, key, changes, condition=condition, remove=remove)

    store.update = update
    return failed


class TestStoreFailures:
    """Store errors during dispatch count as failed attempts."""

    def test_terminal_write_failure_retried(self, print_service, store, transport, sleep, place_order):
        order_id = place_order()
        failed = _fail_job_update_once(store, lambda changes: "status" in changes)

        job_id = print_service.print_order(order_id, RESTAURANT_ID)["jobId"]

        assert len(failed) == 1
        job = _job(store, order_id, job_id)
        assert job["status"] == "SUCCESS"
        assert job["attempts"] == 2
        assert transport.call_count == 2

    def test_attempt_stamp_failure_retried(self, print_service, store, transport, place_order):
        order_id = place_order()
        _fail_job_update_once(store, lambda changes: "attempts" in changes)

        job_id = print_service.print_order(order_id, RESTAURANT_ID)["jobId"]

        job = _job(store, order_id, job_id)
        assert job["status"] == "SUCCESS"
        assert job["attempts"] == 2
        transport.assert_called_once()

    def test_background_job_always_reaches_terminal_state(self, store, place_order):
        service = PrintService(store, transport=MagicMock(), sleep=MagicMock())
        order_id = place_order()
        _fail_job_update_once(store, lambda changes: "status" in changes)

        job_id = service.print_order(order_id, RESTAURANT_ID)["jobId"]
        service.shutdown(timeout_per_thread=5.0)

        assert service.get_print_status(job_id, order_id)["status"] in ("SUCCESS", "FAILED")

    def test_store_errors_exhaust_attempts(self, print_service, store, transport, place_order):
        order_id = place_order()
        job_id = print_service.print_order(order_id, RESTAURANT_ID)["jobId"]
        original_update = store.update

        def update(table, key, changes, condition=None, remove=None):
            if "attempts" in changes:
                raise RuntimeError("store throttled")
            return original_update(table, key, changes, condition=condition, remove=remove)

        store.update = update
        store.update("pos-jobs", {"orderId": order_id, "jobId": job_id}, {"status": "PENDING"})

        status = print_service.dispatch(job_id, _frozen(store, order_id))

        assert status.value == "FAILED"
        assert _job(store, order_id, job_id)["errorMessage"] == "store throttled"


class TestPrintStatus:
    """Test job status reads."""

    def test_status_projection(self, print_service, place_order):
        order_id = place_order()
        job_id = print_service.print_order(order_id, RESTAURANT_ID)["jobId"]

        status = print_service.get_print_status(job_id, order_id)

        assert status["jobId"] == job_id
        assert status["status"] == "SUCCESS"
        assert "completedAt" in status

    def test_unknown_job(self, print_service, place_order):
        with pytest.raises(NotFoundError):
            print_service.get_print_status("no-such-job", place_order())

    def test_job_scoped_to_order(self, print_service, place_order):
        job_id = print_service.print_order(place_order(), RESTAURANT_ID)["jobId"]
        with pytest.raises(NotFoundError):
            print_service.get_print_status(job_id, place_order())


class TestBackgroundDispatch:
    """Test the thread-per-job path."""

    def test_request_returns_before_delivery(self, store, place_order):
        delivered = []
        service = PrintService(store, transport=delivered.append, sleep=MagicMock())
        order_id = place_order()

        result = service.print_order(order_id, RESTAURANT_ID)
        assert result["status"] == "PENDING"

        service.shutdown(timeout_per_thread=5.0)

        assert len(delivered) == 1
        assert not service.is_job_pending(result["jobId"])
        assert service.get_print_status(result["jobId"], order_id)["status"] == "SUCCESS"


class TestPrinterClient:
    """Test the HTTP printer transport."""

    def test_posts_raw_payload(self):
        session = MagicMock()
        session.post.return_value = MagicMock(ok=True)

        send_to_printer(b"\x1b@hello", "http://printer.local/print", timeout=3, session=session)

        args, kwargs = session.post.call_args
        assert args[0] == "http://printer.local/print"
        assert kwargs["data"] == b"\x1b@hello"
        assert kwargs["headers"]["Content-Type"] == "application/octet-stream"
        assert kwargs["headers"]["X-Print-Type"] == "ESCPOS"
        assert kwargs["timeout"] == 3

    def test_non_2xx_raises(self):
        session = MagicMock()
        session.post.return_value = MagicMock(ok=False, status_code=503, reason="Service Unavailable")

        with pytest.raises(PrinterError) as exc_info:
            send_to_printer(b"x", "http://printer.local/print", session=session)
        assert exc_info.value.status_code == 503

    def test_connection_error_raises(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("refused")

        with pytest.raises(PrinterError):
            send_to_printer(b"x", "http://printer.local/print", session=session)

    def test_no_endpoint_logs_only(self):
        session = MagicMock()
        send_to_printer(b"hello", None, session=session)
        session.post.assert_not_called()
