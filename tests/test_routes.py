"""
HTTP tests for the Flask routes.

The app runs with TestingConfig: in-memory store, no scheduler thread,
log-only printer and zero print backoff.
"""

import json
import uuid

import pytest

from conftest import MENU_ITEMS, RESTAURANT_ID


# Fixtures

@pytest.fixture
def menu(client):
    response = client.post(f"/menu?restaurantId={RESTAURANT_ID}&confirm=true", json={"items": MENU_ITEMS})
    assert response.status_code == 201
    return response.get_json()


def _order_body(price=12000, quantity=1):
    return {
        "restaurantId": RESTAURANT_ID,
        "items": [{
            "menuItemId": "burger",
            "name": "Bulgogi Burger",
            "price": price,
            "quantity": quantity,
            "selectedOptions": [
                {"optionId": "size", "choiceId": "large", "name": "Large", "priceModifier": 2000},
            ],
        }],
        "customerInfo": {"phone": "010-1234-5678"},
    }


@pytest.fixture
def order_id(client, menu):
    response = client.post("/order", json=_order_body())
    assert response.status_code == 201
    return response.get_json()["orderId"]


def _signed_naver_callback(app, order_id, amount=12000):
    naverpay = app.config["PAYMENT_PROVIDERS"].get("naverpay")
    body = {
        "merchantPayKey": order_id,
        "paymentId": "naver-txn-1",
        "totalPayAmount": amount,
        "admissionState": "SUCCESS",
        "admissionYmdt": "20261019101530",
    }
    signature = naverpay.sign(body["paymentId"], body["merchantPayKey"], body["admissionYmdt"])
    return json.dumps(body), {"X-NaverPay-Signature": signature}


def _assert_problem(response, status):
    assert response.status_code == status
    assert response.mimetype == "application/problem+json"
    problem = response.get_json()
    assert problem["status"] == status
    assert set(problem) >= {"type", "title", "status", "detail"}
    return problem


class TestMenuRoutes:

    def test_publish_and_read(self, client, menu):
        assert menu["status"] == "CONFIRMED"

        response = client.get(f"/menu?restaurantId={RESTAURANT_ID}")

        assert response.status_code == 200
        assert response.get_json()["version"] == menu["version"]

    def test_no_menu(self, client):
        _assert_problem(client.get("/menu?restaurantId=nowhere"), 404)

    def test_invalid_option_type(self, client):
        items = [{
            "id": "x", "name": "X", "price": 1,
            "options": [{"id": "o", "name": "O", "type": "color", "choices": [{"id": "c", "name": "C", "priceModifier": 0}]}],
        }]
        response = client.post(f"/menu?restaurantId={RESTAURANT_ID}", json={"items": items})
        _assert_problem(response, 400)

    def test_nan_menu_price_rejected(self, client):
        body = {"items": [{"id": "cola", "name": "Cola", "price": float("nan")}]}
        response = client.post(
            f"/menu?restaurantId={RESTAURANT_ID}&confirm=true",
            data=json.dumps(body),
            content_type="application/json",
        )
        _assert_problem(response, 400)
        _assert_problem(client.get(f"/menu?restaurantId={RESTAURANT_ID}"), 404)


class TestOrderRoutes:
    """Test the order lifecycle over HTTP."""

    def test_create(self, client, menu):
        response = client.post("/order", json=_order_body())

        assert response.status_code == 201
        data = response.get_json()
        assert data["status"] == "CREATED"
        assert data["totalAmount"] == 12000
        assert data["paymentUrl"].endswith(f"orderId={data['orderId']}")

    def test_price_mismatch_is_422(self, client, menu):
        problem = _assert_problem(client.post("/order", json=_order_body(price=9000)), 422)
        assert "Bulgogi Burger" in problem["detail"]

    def test_invalid_body_lists_errors(self, client, menu):
        body = _order_body(quantity=0)
        body["restaurantId"] = ""
        problem = _assert_problem(client.post("/order", json=body), 400)
        assert "restaurantId is required" in problem["detail"]
        assert "items[0].quantity must be an integer between 1 and 99" in problem["detail"]

    def test_non_json_body(self, client, menu):
        response = client.post("/order", data="not json", content_type="application/json")
        problem = _assert_problem(response, 400)
        assert problem["detail"] == "Request body must be valid JSON"

    def test_nan_price_rejected(self, client, menu):
        body = {
            "restaurantId": RESTAURANT_ID,
            "items": [{"menuItemId": "cola", "name": "Cola", "price": float("nan"), "quantity": 1}],
        }
        response = client.post("/order", data=json.dumps(body), content_type="application/json")
        _assert_problem(response, 400)
        assert client.get(f"/orders?restaurantId={RESTAURANT_ID}").get_json()["count"] == 0

    def test_get(self, client, order_id):
        response = client.get(f"/order/{order_id}?restaurantId={RESTAURANT_ID}")

        assert response.status_code == 200
        data = response.get_json()
        assert data["orderId"] == order_id
        assert data["items"][0]["name"] == "Bulgogi Burger"

    def test_get_requires_restaurant(self, client, order_id):
        problem = _assert_problem(client.get(f"/order/{order_id}"), 400)
        assert problem["detail"] == "Restaurant ID is required"

    def test_get_missing(self, client, menu):
        _assert_problem(client.get(f"/order/{uuid.uuid4()}?restaurantId={RESTAURANT_ID}"), 404)

    def test_cancel(self, client, order_id):
        response = client.delete(f"/order/{order_id}?restaurantId={RESTAURANT_ID}")

        assert response.status_code == 200
        assert response.get_json() == {
            "orderId": order_id,
            "status": "CANCELLED",
            "refundAmount": 12000,
            "refundMethod": "original",
        }
        _assert_problem(client.delete(f"/order/{order_id}?restaurantId={RESTAURANT_ID}"), 400)

    def test_status_change_after_payment(self, app, client, order_id):
        raw, headers = _signed_naver_callback(app, order_id)
        client.post("/payment/callback/naverpay", data=raw, headers=headers, content_type="application/json")

        url = f"/order/{order_id}/status?restaurantId={RESTAURANT_ID}"
        response = client.put(url, json={"status": "cooking"})

        assert response.status_code == 200
        assert response.get_json()["status"] == "COOKING"
        _assert_problem(client.put(url, json={"status": "COMPLETED"}), 400)
        _assert_problem(client.put(url, json={"status": "EATEN"}), 400)

    def test_list(self, client, order_id):
        response = client.get(f"/orders?restaurantId={RESTAURANT_ID}&status=CREATED")

        assert response.status_code == 200
        data = response.get_json()
        assert data["count"] == 1
        assert data["orders"][0]["orderId"] == order_id

    def test_list_limit_bounds(self, client, menu):
        _assert_problem(client.get(f"/orders?restaurantId={RESTAURANT_ID}&limit=0"), 400)


class TestPaymentCallbackRoute:

    def test_success_then_duplicate(self, app, client, order_id):
        raw, headers = _signed_naver_callback(app, order_id)

        first = client.post("/payment/callback/naverpay", data=raw, headers=headers, content_type="application/json")
        assert first.status_code == 200
        assert first.get_json() == {"success": True, "orderId": order_id, "status": "PAID"}

        second = client.post("/payment/callback/naverpay", data=raw, headers=headers, content_type="application/json")
        _assert_problem(second, 409)

    def test_bad_signature(self, app, client, order_id):
        raw, _ = _signed_naver_callback(app, order_id)
        response = client.post(
            "/payment/callback/naverpay",
            data=raw,
            headers={"X-NaverPay-Signature": "bad"},
            content_type="application/json",
        )
        _assert_problem(response, 401)

        order = client.get(f"/order/{order_id}?restaurantId={RESTAURANT_ID}").get_json()
        assert order["status"] == "CREATED"

    def test_non_ascii_signature_is_401(self, app, client, order_id):
        raw, _ = _signed_naver_callback(app, order_id)
        response = client.post(
            "/payment/callback/naverpay",
            data=raw,
            headers={"X-NaverPay-Signature": "caf\xe9"},
            content_type="application/json",
        )
        _assert_problem(response, 401)


class TestPosRoutes:
    """Test print queueing over HTTP."""

    def test_print_then_poll(self, app, client, order_id):
        response = client.post(f"/pos/print?restaurantId={RESTAURANT_ID}", json={"orderId": order_id})

        assert response.status_code == 201
        job = response.get_json()
        assert job["status"] == "PENDING"

        app.config["PRINT_SERVICE"].shutdown()
        status = client.get(f"/pos/print/{job['jobId']}?orderId={order_id}").get_json()
        assert status["status"] == "SUCCESS"

    def test_reprint_is_new_job(self, app, client, order_id):
        url = f"/pos/reprint?restaurantId={RESTAURANT_ID}"
        first = client.post(url, json={"orderId": order_id}).get_json()
        second = client.post(url, json={"orderId": order_id}).get_json()
        assert first["jobId"] != second["jobId"]

    def test_print_requires_uuid(self, client, menu):
        problem = _assert_problem(
            client.post(f"/pos/print?restaurantId={RESTAURANT_ID}", json={"orderId": "abc"}), 400
        )
        assert problem["detail"] == "Order ID must be a UUID"

    def test_unknown_job(self, client, order_id):
        _assert_problem(client.get(f"/pos/print/{uuid.uuid4()}?orderId={order_id}"), 404)


class TestOperationalRoutes:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "ok"
        assert data["checks"]["auto_completion"] == "external"
        assert data["checks"]["printer"] == "log_only"
        assert sorted(data["checks"]["payment_providers"]) == ["kakaopay", "naverpay"]

    def test_unknown_route_is_problem(self, client):
        _assert_problem(client.get("/no-such-route"), 404)

    def test_auto_complete_command(self, app):
        result = app.test_cli_runner().invoke(args=["auto-complete"])
        assert result.exit_code == 0
        assert json.loads(result.output.strip().splitlines()[-1]) == {"candidates": 0, "completed": 0, "skipped": 0, "errors": 0}
