# -*- coding: utf-8 -*-
"""
Dual confirmation gate: funds are captured once, and only after both the
client and the cook have confirmed delivery.
"""
import pytest

from khidma.database import db
from khidma.middleware.errors import UpstreamError
from khidma.models import FoodOrder, User


def _confirm(client, headers, order_id, role):
    return client.post("/api/orders/confirm", json={"order_id": order_id, "role": role},
                       headers=headers)


class TestDualConfirmation:

    def test_client_then_cook(self, client, payments, customer, cook, paid_order, auth_headers):
        first = _confirm(client, auth_headers(customer), paid_order.id, "client")
        assert first.status_code == 200
        assert first.get_json() == {
            "success": True,
            "message": "Client confirmation recorded",
            "client_confirmed": True,
            "cook_confirmed": False,
            "escrow_released": False,
        }
        assert payments.calls_to("capture_payment") == []

        second = _confirm(client, auth_headers(cook.user), paid_order.id, "cook")
        data = second.get_json()
        assert second.status_code == 200
        assert data["success"] is True
        assert data["message"] == "Order completed, payment released"
        assert data["escrow_released"] is True
        assert data["client_confirmed"] is True and data["cook_confirmed"] is True
        assert data["receipt"]["order_id"] == paid_order.id
        assert data["receipt"]["dish_name"] == "Couscous"
        assert data["receipt"]["total_amount"] == 150.0
        assert data["receipt"]["platform_fee"] == 15.0
        assert data["receipt"]["cook_amount"] == 135.0

        assert payments.calls_to("capture_payment") == [("capture_payment", "pi_test_123")]

        order = db.session.get(FoodOrder, paid_order.id)
        assert order.status == "completed"
        assert order.payment_status == "released"
        assert order.escrow_released_at is not None
        assert order.receipt_generated_at is not None

    def test_cook_then_client(self, client, payments, customer, cook, paid_order, auth_headers):
        first = _confirm(client, auth_headers(cook.user), paid_order.id, "cook")
        assert first.get_json()["message"] == "Cook confirmation recorded"
        assert first.get_json()["cook_confirmed"] is True
        assert first.get_json()["client_confirmed"] is False

        second = _confirm(client, auth_headers(customer), paid_order.id, "client")
        assert second.get_json()["escrow_released"] is True
        assert len(payments.calls_to("capture_payment")) == 1

    def test_repeat_confirmation_captures_once(self, client, payments, customer, cook,
                                               paid_order, auth_headers):
        _confirm(client, auth_headers(customer), paid_order.id, "client")
        released = _confirm(client, auth_headers(cook.user), paid_order.id, "cook").get_json()

        again = _confirm(client, auth_headers(customer), paid_order.id, "client").get_json()

        assert again["escrow_released"] is True
        assert again["receipt"] == released["receipt"]
        assert len(payments.calls_to("capture_payment")) == 1

    def test_same_role_twice_does_not_release(self, client, payments, customer, paid_order,
                                              auth_headers):
        _confirm(client, auth_headers(customer), paid_order.id, "client")
        response = _confirm(client, auth_headers(customer), paid_order.id, "client")

        assert response.get_json()["escrow_released"] is False
        assert payments.calls_to("capture_payment") == []

    @pytest.mark.parametrize("status", ["cancelled", "failed"])
    def test_closed_order_is_not_payable(self, client, payments, customer, cook, paid_order,
                                         auth_headers, status):
        paid_order.status = status
        paid_order.payment_status = "failed"
        paid_order.stripe_payment_intent_id = None
        db.session.commit()

        response = _confirm(client, auth_headers(customer), paid_order.id, "client")
        assert response.status_code == 500
        assert response.get_json() == {"error": "Order is not payable"}

        _confirm(client, auth_headers(cook.user), paid_order.id, "cook")

        order = db.session.get(FoodOrder, paid_order.id)
        assert order.status == status
        assert order.payment_status == "failed"
        assert order.client_confirmed_at is None and order.cook_confirmed_at is None
        assert order.receipt_data is None
        assert payments.calls_to("capture_payment") == []

    def test_unauthorized_payment_is_not_released(self, client, payments, customer, cook,
                                                  paid_order, auth_headers):
        paid_order.status = "pending"
        paid_order.payment_status = "pending"
        db.session.commit()

        _confirm(client, auth_headers(customer), paid_order.id, "client")
        response = _confirm(client, auth_headers(cook.user), paid_order.id, "cook").get_json()

        assert response["escrow_released"] is False
        assert response["client_confirmed"] is True and response["cook_confirmed"] is True
        assert payments.calls_to("capture_payment") == []
        assert db.session.get(FoodOrder, paid_order.id).payment_status == "pending"

        # The hold arrives later; the next confirmation releases it
        paid_order.payment_status = "authorized"
        paid_order.status = "paid"
        db.session.commit()
        again = _confirm(client, auth_headers(customer), paid_order.id, "client").get_json()
        assert again["escrow_released"] is True
        assert len(payments.calls_to("capture_payment")) == 1

    def test_capture_error_still_completes(self, client, payments, customer, cook, paid_order,
                                           auth_headers):
        payments.capture_error = UpstreamError("This PaymentIntent has already been captured.")

        _confirm(client, auth_headers(customer), paid_order.id, "client")
        response = _confirm(client, auth_headers(cook.user), paid_order.id, "cook")

        assert response.status_code == 200
        assert response.get_json()["escrow_released"] is True
        assert db.session.get(FoodOrder, paid_order.id).payment_status == "released"

    def test_legacy_function_path(self, client, customer, paid_order, auth_headers):
        response = client.post("/functions/confirm-order-delivery",
                               json={"order_id": paid_order.id, "role": "client"},
                               headers=auth_headers(customer))
        assert response.status_code == 200


class TestConfirmationRejections:

    def test_cook_cannot_confirm_as_client(self, client, cook, paid_order, auth_headers):
        response = _confirm(client, auth_headers(cook.user), paid_order.id, "client")
        assert response.status_code == 500
        assert response.get_json() == {"error": "Unauthorized: Not the client"}
        assert db.session.get(FoodOrder, paid_order.id).client_confirmed_at is None

    def test_stranger_cannot_confirm_as_cook(self, client, paid_order, auth_headers):
        stranger = User(email="stranger@example.com")
        db.session.add(stranger)
        db.session.commit()

        response = _confirm(client, auth_headers(stranger), paid_order.id, "cook")
        assert response.get_json() == {"error": "Unauthorized: Not the cook"}
        assert db.session.get(FoodOrder, paid_order.id).cook_confirmed_at is None

    def test_invalid_role(self, client, customer, paid_order, auth_headers):
        response = _confirm(client, auth_headers(customer), paid_order.id, "courier")
        assert response.get_json() == {"error": "Invalid role"}

    def test_missing_fields(self, client, customer, auth_headers):
        response = client.post("/api/orders/confirm", json={"role": "client"},
                               headers=auth_headers(customer))
        assert response.status_code == 500
        assert response.get_json() == {"error": "Missing required fields: order_id, role"}

    def test_unknown_order(self, client, customer, auth_headers):
        response = _confirm(client, auth_headers(customer), "no-such-order", "client")
        assert response.get_json() == {"error": "Order not found"}
