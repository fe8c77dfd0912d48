# -*- coding: utf-8 -*-

from flask import Blueprint, jsonify
import time
from sqlalchemy import text

from weddingpay.infra.db import db
from weddingpay.infra.log import get_logger

health_bp = Blueprint('health', __name__)
logger = get_logger('weddingpay.health')


@health_bp.route('/health', methods=['GET', 'HEAD'])
@health_bp.route('/healthz', methods=['GET', 'HEAD'])
def healthz():
    """Liveness check (available at both /health and /healthz)."""
    return jsonify({
        'status': 'healthy',
        'service': 'weddingpay',
        'timestamp': time.time()
    }), 200


@health_bp.route('/readyz', methods=['GET', 'HEAD'])
def readyz():
    """Readiness check: the database must answer."""
    try:
        db.session.execute(text('SELECT 1'))
        database_ok = True
    except Exception as e:
        logger.warning("Readiness check failed", error=str(e))
        db.session.rollback()
        database_ok = False

    return jsonify({
        'status': 'ready' if database_ok else 'not_ready',
        'service': 'weddingpay',
        'timestamp': time.time(),
        'checks': {
            'database': database_ok
        }
    }), 200 if database_ok else 503
