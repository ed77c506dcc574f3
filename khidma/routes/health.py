# -*- coding: utf-8 -*-

import time

from flask import Blueprint, jsonify

from khidma.infra.db import db

health_bp = Blueprint('health', __name__)


@health_bp.route('/health', methods=['GET', 'HEAD'])
@health_bp.route('/healthz', methods=['GET', 'HEAD'])
def healthz():
    """Liveness check, no dependencies touched."""
    return jsonify({
        'status': 'healthy',
        'service': 'khidma-api',
        'timestamp': time.time()
    }), 200


@health_bp.route('/readyz', methods=['GET', 'HEAD'])
def readyz():
    """Readiness check: the database answers a trivial query."""
    checks = {'database': True}
    try:
        db.session.execute(db.text('SELECT 1'))
    except Exception as e:
        db.session.rollback()
        checks['database'] = False
        return jsonify({
            'status': 'degraded',
            'service': 'khidma-api',
            'timestamp': time.time(),
            'checks': checks,
            'database_error': str(e),
        }), 503

    return jsonify({
        'status': 'ready',
        'service': 'khidma-api',
        'timestamp': time.time(),
        'checks': checks
    }), 200
