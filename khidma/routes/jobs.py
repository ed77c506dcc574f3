# -*- coding: utf-8 -*-
"""
HTTP triggers for scheduled jobs, for schedulers that can only call URLs.
Guarded by the X-Cron-Secret header.
"""
import hmac

from flask import Blueprint, current_app, jsonify, request

from khidma.jobs.orders import reconcile_orphaned_orders
from khidma.jobs.reminders import run_subscription_reminders
from khidma.middleware.errors import AuthenticationError

jobs_bp = Blueprint("jobs", __name__, url_prefix="/api/jobs")


def _require_cron_secret():
    expected = current_app.config.get("CRON_SECRET")
    provided = request.headers.get("X-Cron-Secret", "")
    if not expected or not hmac.compare_digest(expected, provided):
        raise AuthenticationError("Invalid cron secret")


@jobs_bp.route("/subscription-reminders", methods=["POST"])
def subscription_reminders():
    _require_cron_secret()
    return jsonify(run_subscription_reminders()), 200


@jobs_bp.route("/reconcile-orders", methods=["POST"])
def reconcile_orders():
    _require_cron_secret()
    count = reconcile_orphaned_orders(
        ttl_minutes=current_app.config.get("ORPHAN_ORDER_TTL_MINUTES", 60))
    return jsonify({"success": True, "reconciled": count}), 200
