"""
Lead generation routes — start a session, poll its progress, read its leads.
"""
import logging
from flask import Blueprint, request, jsonify

from leadgen import extensions
from leadgen.config import SOURCE_METHODS, METHOD_ALIASES, MAX_RESULT_LIMIT
from leadgen.pipeline.manager import (
    launch_session, get_session_status, list_sessions, SchedulingError,
)
from leadgen.pipeline.request import ValidationError
from leadgen.services.db import list_leads

logger = logging.getLogger('routes.generate')

bp = Blueprint('generate', __name__)


@bp.route('/api/generate-leads', methods=['POST'])
def generate_leads():
    """Start a pipeline session. Returns 202 with the session id before any scraping."""
    data = request.get_json(silent=True)
    if data is None:
        return jsonify({'status': 'error', 'message': 'Request body must be JSON'}), 400

    try:
        session = launch_session(data)
    except ValidationError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400
    except SchedulingError as e:
        return jsonify({'status': 'error', 'message': f'Could not schedule lead generation: {e}'}), 503

    return jsonify({'session_id': session.id, 'status': 'running'}), 202


@bp.route('/api/generate-leads', methods=['GET'])
def generation_config():
    """Which providers are configured and which methods can run."""
    apify_ok = extensions.apify_client is not None
    openai_ok = extensions.openai_client is not None
    return jsonify({
        'status': 'success',
        'configured': {
            'apify': apify_ok,
            'openai': openai_ok,
        },
        'available_methods': SOURCE_METHODS if apify_ok else [],
        'method_aliases': METHOD_ALIASES,
        'max_result_limit': MAX_RESULT_LIMIT,
        'scoring_enabled': openai_ok,
    })


@bp.route('/api/generate-leads/status')
def generation_status():
    """
    Poll a session. `since` returns only events with seq >= since; pass the
    previous response's next_seq to receive each event once.
    """
    session_id = request.args.get('session_id', '').strip()
    if not session_id:
        return jsonify({'status': 'error', 'message': 'session_id is required'}), 400

    since = request.args.get('since', 0, type=int) or 0
    if since < 0:
        return jsonify({'status': 'error', 'message': 'since must be >= 0'}), 400

    status = get_session_status(session_id, since=since)
    if status is None:
        return jsonify({
            'status': 'not_found',
            'error': 'Session not found',
            'session_id': session_id,
        }), 404
    return jsonify(status)


@bp.route('/api/generate-leads/sessions')
def recent_sessions():
    """Recent sessions, newest first."""
    limit = request.args.get('limit', 20, type=int)
    limit = max(1, min(limit or 20, 100))
    return jsonify({'sessions': list_sessions(limit=limit)})


@bp.route('/api/leads')
def get_leads():
    """Persisted leads of a session (available once it completed)."""
    session_id = request.args.get('session_id', '').strip()
    if not session_id:
        return jsonify({'status': 'error', 'message': 'session_id is required'}), 400

    try:
        leads = list_leads(session_id)
    except Exception:
        logger.error("Failed to load leads for session %s", session_id, exc_info=True)
        return jsonify({'status': 'error', 'message': 'Failed to load leads'}), 500

    return jsonify({'session_id': session_id, 'total': len(leads), 'leads': leads})
