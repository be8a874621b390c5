"""
ICP routes — default profile, profile validation, default scoring prompt.
"""
from flask import Blueprint, request, jsonify

from leadgen.pipeline.icp import ICPConfig, load_default_icp, default_prompt
from leadgen.pipeline.request import ValidationError

bp = Blueprint('icp', __name__)


@bp.route('/api/icp/config')
def icp_config():
    """The ICP used when a request carries none."""
    return jsonify({'status': 'success', 'data': load_default_icp().to_dict()})


@bp.route('/api/icp/validate', methods=['POST'])
def validate_icp():
    """Check a profile's shape and weights without starting a session."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'status': 'error', 'message': 'Request body must be a JSON object'}), 400
    try:
        icp = ICPConfig.from_dict(data).validate()
    except ValidationError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400
    return jsonify({'status': 'success', 'data': icp.to_dict()})


@bp.route('/api/icp/default-prompt')
def icp_default_prompt():
    return jsonify(default_prompt())
