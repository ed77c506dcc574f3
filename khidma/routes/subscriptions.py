# -*- coding: utf-8 -*-
"""
Provider subscription routes (status check and Stripe Checkout signup).
"""
from flask import Blueprint, current_app, g, jsonify

from khidma.infra.auth import auth_required
from khidma.infra.db import db
from khidma.routes._common import _json, request_origin
from khidma.schemas.requests import ProviderTypeRequestSchema, load_request
from khidma.services.payments import get_payments_gateway
from khidma.services.subscription_service import SubscriptionService

subscriptions_bp = Blueprint("subscriptions", __name__)


def _subscription_service() -> SubscriptionService:
    return SubscriptionService(
        session=db.session,
        payments=get_payments_gateway(),
        prices=current_app.config["STRIPE_PRICES"],
        trial_days=current_app.config["TRIAL_PERIOD_DAYS"],
        site_url=current_app.config["PUBLIC_SITE_URL"],
    )


@subscriptions_bp.route("/api/subscriptions/check", methods=["POST", "OPTIONS"])
@subscriptions_bp.route("/functions/check-subscription", methods=["POST", "OPTIONS"])
@auth_required
def check_subscription():
    """Report whether the caller's provider account is in trial or subscribed."""
    data = load_request(ProviderTypeRequestSchema(), _json())
    return jsonify(_subscription_service().check(g.current_user, data["provider_type"])), 200


@subscriptions_bp.route("/api/subscriptions/checkout", methods=["POST", "OPTIONS"])
@subscriptions_bp.route("/functions/create-subscription", methods=["POST", "OPTIONS"])
@auth_required
def create_subscription():
    """Creates a Stripe Checkout session for the monthly provider plan."""
    data = load_request(ProviderTypeRequestSchema(), _json())
    result = _subscription_service().create_checkout(
        g.current_user, data["provider_type"], origin=request_origin())
    return jsonify(result), 200
