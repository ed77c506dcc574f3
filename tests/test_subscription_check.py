# -*- coding: utf-8 -*-
from datetime import timedelta

import pytest

from khidma.database import db
from khidma.middleware.errors import ValidationError
from khidma.models import HouseWorker, User
from khidma.services.subscription_service import SubscriptionService, trial_status
from khidma.utils.clock import ensure_aware, from_unix, isoformat, utcnow


def _check(client, headers, provider_type="home_cook"):
    return client.post("/api/subscriptions/check", json={"provider_type": provider_type},
                       headers=headers)


@pytest.fixture
def service(app, payments):
    return SubscriptionService(session=db.session, payments=payments)


class TestTrialWindow:

    def test_days_left_rounds_up(self, cook):
        now = utcnow()
        cook.start_trial(30, now=now - timedelta(days=25))
        result = trial_status(cook, now)
        assert result["subscribed"] is True
        assert result["status"] == "trial"
        assert result["days_left"] == 5

    def test_partial_day_counts_as_one(self, cook):
        now = utcnow()
        cook.subscription_ends_at = now + timedelta(hours=3)
        assert trial_status(cook, now)["days_left"] == 1

    def test_closed_window(self, cook):
        now = utcnow()
        cook.subscription_ends_at = now - timedelta(seconds=1)
        assert trial_status(cook, now) is None

    def test_not_on_trial(self, cook):
        cook.subscription_status = "active"
        assert trial_status(cook, utcnow()) is None


class TestSubscriptionCheck:

    def test_trial_without_stripe_customer(self, client, payments, cook, auth_headers):
        response = _check(client, auth_headers(cook.user))

        assert response.status_code == 200
        data = response.get_json()
        assert data["subscribed"] is True
        assert data["status"] == "trial"
        assert data["days_left"] in (29, 30)
        assert data["trial_ends_at"]
        assert payments.calls_to("latest_subscription") == []

    def test_expired_without_stripe_customer(self, client, cook, auth_headers):
        cook.subscription_ends_at = utcnow() - timedelta(days=1)
        db.session.commit()

        response = _check(client, auth_headers(cook.user))
        assert response.get_json() == {"subscribed": False, "status": "expired"}

    def test_no_provider_row_is_expired(self, client, customer, auth_headers):
        response = _check(client, auth_headers(customer), "house_worker")
        assert response.get_json() == {"subscribed": False, "status": "expired"}

    def test_customer_without_subscription_falls_back_to_trial(self, service, payments, cook):
        payments.ensure_customer(cook.user.email)
        result = service.check(cook.user, "home_cook")
        assert result["status"] == "trial"

    def test_customer_without_subscription_or_trial(self, service, payments, cook):
        payments.ensure_customer(cook.user.email)
        cook.subscription_status = "expired"
        db.session.commit()

        assert service.check(cook.user, "home_cook") == {
            "subscribed": False,
            "status": "no_subscription",
        }

    def test_active_subscription_is_mirrored(self, service, payments, cook):
        customer_id = payments.ensure_customer(cook.user.email)
        period_end = int((utcnow() + timedelta(days=20)).timestamp())
        payments.subscriptions[customer_id] = {
            "id": "sub_test_1",
            "status": "active",
            "current_period_end": period_end,
            "trial_end": None,
        }

        result = service.check(cook.user, "home_cook")

        assert result["subscribed"] is True
        assert result["status"] == "active"
        assert result["subscription_end"] == isoformat(from_unix(period_end))
        assert result["trial_end"] is None

        db.session.refresh(cook)
        assert cook.subscription_status == "active"
        assert cook.stripe_subscription_id == "sub_test_1"
        assert int(ensure_aware(cook.subscription_ends_at).timestamp()) == period_end

    def test_period_end_from_subscription_items(self, service, payments, cook):
        customer_id = payments.ensure_customer(cook.user.email)
        payments.subscriptions[customer_id] = {
            "id": "sub_test_2",
            "status": "trialing",
            "items": {"data": [{"current_period_end": 1893456000}]},
            "trial_end": 1893456000,
        }

        result = service.check(cook.user, "home_cook")

        assert result["subscribed"] is True
        assert result["status"] == "trialing"
        assert result["subscription_end"] == "2030-01-01T00:00:00+00:00"
        assert result["trial_end"] == "2030-01-01T00:00:00+00:00"

    @pytest.mark.parametrize("status", ["past_due", "canceled", "incomplete", "unpaid"])
    def test_other_stripe_statuses_are_not_subscribed(self, service, payments, cook, status):
        customer_id = payments.ensure_customer(cook.user.email)
        payments.subscriptions[customer_id] = {"id": "sub_x", "status": status,
                                               "current_period_end": 1893456000}

        result = service.check(cook.user, "home_cook")
        assert result["subscribed"] is False
        assert result["status"] == status

    def test_provider_types_are_separate(self, service, payments, cook):
        worker = HouseWorker(user_id=cook.user_id, subscription_status="expired")
        db.session.add(worker)
        db.session.commit()

        assert service.check(cook.user, "home_cook")["status"] == "trial"
        assert service.check(cook.user, "house_worker")["status"] == "expired"

    @pytest.mark.parametrize("provider_type", [None, "", "driver"])
    def test_invalid_provider_type(self, service, customer, provider_type):
        with pytest.raises(ValidationError, match="Invalid provider type"):
            service.check(customer, provider_type)

    def test_invalid_provider_type_over_http(self, client, customer, auth_headers):
        response = _check(client, auth_headers(customer), "driver")
        assert response.status_code == 500
        assert response.get_json() == {"error": "Invalid provider type"}

    def test_legacy_function_path(self, client, cook, auth_headers):
        response = client.post("/functions/check-subscription",
                               json={"provider_type": "home_cook"},
                               headers=auth_headers(cook.user))
        assert response.get_json()["status"] == "trial"

    def test_user_without_email_is_rejected(self, client, auth_headers):
        ghost = User(email="")
        db.session.add(ghost)
        db.session.commit()

        response = _check(client, auth_headers(ghost))
        assert response.get_json() == {"error": "User not authenticated"}
