# -*- coding: utf-8 -*-
"""
Food order routes: escrow-backed order intake and delivery confirmation.
"""
from flask import Blueprint, current_app, g, jsonify

from khidma.infra.auth import auth_required
from khidma.infra.db import db
from khidma.routes._common import _json, request_origin
from khidma.schemas.requests import (
    ConfirmDeliveryRequestSchema,
    FoodOrderRequestSchema,
    load_request,
)
from khidma.services.order_service import OrderRequest, OrderService
from khidma.services.payments import get_payments_gateway

orders_bp = Blueprint("orders", __name__)


def _order_service() -> OrderService:
    return OrderService(
        session=db.session,
        payments=get_payments_gateway(),
        fee_percent=current_app.config["PLATFORM_FEE_PERCENT"],
        site_url=current_app.config["PUBLIC_SITE_URL"],
        checkout_ttl_minutes=current_app.config.get("ORPHAN_ORDER_TTL_MINUTES", 60),
    )


@orders_bp.route("/api/orders/food", methods=["POST", "OPTIONS"])
@orders_bp.route("/functions/create-food-order", methods=["POST", "OPTIONS"])
@auth_required
def create_food_order():
    """Open a payment hold for a dish and return the hosted checkout URL."""
    data = load_request(FoodOrderRequestSchema(), _json())
    result = _order_service().create_order(
        g.current_user,
        OrderRequest(**data),
        origin=request_origin(),
    )
    return jsonify(result), 200


@orders_bp.route("/api/orders/confirm", methods=["POST", "OPTIONS"])
@orders_bp.route("/functions/confirm-order-delivery", methods=["POST", "OPTIONS"])
@auth_required
def confirm_order_delivery():
    """Record the caller's delivery confirmation; release funds once both agree."""
    data = load_request(ConfirmDeliveryRequestSchema(), _json())
    result = _order_service().confirm_delivery(g.current_user, data["order_id"], data["role"])
    return jsonify(result), 200
