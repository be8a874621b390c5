"""
Health routes — liveness and dependency checks.
"""
import logging
from flask import Blueprint, jsonify

from leadgen import extensions

logger = logging.getLogger('routes.health')

bp = Blueprint('health', __name__)


@bp.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/health')
def api_health():
    """Reachability of Redis plus which providers are configured."""
    try:
        extensions.redis_client.ping()
        redis_ok = True
    except Exception as e:
        logger.warning("Redis ping failed: %s", e)
        redis_ok = False

    services = {
        'redis': 'ok' if redis_ok else 'unreachable',
        'apify': 'configured' if extensions.apify_client is not None else 'not_configured',
        'openai': 'configured' if extensions.openai_client is not None else 'not_configured',
    }
    status = 'healthy' if redis_ok else 'degraded'
    return jsonify({'status': status, 'services': services}), 200 if redis_ok else 503
