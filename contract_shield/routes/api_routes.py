"""
JSON API over the analysis pipeline, history and subscription.
"""
import logging

from flask import Blueprint, current_app, jsonify, request

from contract_shield.errors import ContractShieldError
from contract_shield.models import InputMethod
from contract_shield.services.history_store import HISTORY_FILTERS
from contract_shield.utils.credentials import looks_like_api_key

api_bp = Blueprint('api', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)


def _state():
    return current_app.extensions['contract_shield']


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@api_bp.errorhandler(ContractShieldError)
def handle_pipeline_error(error: ContractShieldError):
    """Render any pipeline error with its classification and user message."""
    logger.warning(f"Request failed with {type(error).__name__}: {error}")
    return jsonify(error.to_dict()), error.status_code


@api_bp.route('/analyze', methods=['POST'])
def analyze():
    """Run an analysis on submitted contract text"""
    data = _json_body()
    text = data.get('text')
    if text is not None and not isinstance(text, str):
        return jsonify({'success': False, 'message': "'text' must be a string"}), 400

    method = data.get('inputMethod', InputMethod.PASTE.value)
    try:
        input_method = InputMethod(method)
    except ValueError:
        return jsonify({
            'success': False,
            'message': f"'inputMethod' must be one of: {', '.join(m.value for m in InputMethod)}"
        }), 400

    file_name = data.get('fileName') or None
    state = _state()
    analysis = state.orchestrator.analyze(text or '', input_method, file_name)
    entry = state.history.get_entry(analysis.id)

    return jsonify({
        'success': True,
        'analysis': analysis.to_dict(),
        'history': entry.to_dict() if entry else None,
        'remaining': state.quota.remaining(),
    }), 201


@api_bp.route('/demo', methods=['POST'])
def demo():
    """Add the sample analysis without using quota"""
    analysis = _state().orchestrator.run_demo()
    return jsonify({'success': True, 'analysis': analysis.to_dict()}), 201


@api_bp.route('/history', methods=['GET'])
def list_history():
    filter_by = request.args.get('filter', 'all')
    if filter_by not in HISTORY_FILTERS:
        return jsonify({
            'success': False,
            'message': f"'filter' must be one of: {', '.join(HISTORY_FILTERS)}"
        }), 400

    entries = _state().history.list_history(filter_by)
    return jsonify({
        'success': True,
        'history': [entry.to_dict() for entry in entries],
        'count': len(entries),
    })


@api_bp.route('/stats', methods=['GET'])
def stats():
    state = _state()
    return jsonify({
        'success': True,
        'stats': state.history.stats(),
        'totalReviews': state.quota.profile.total_reviews,
        'remaining': state.quota.remaining(),
    })


@api_bp.route('/analyses/<analysis_id>', methods=['GET'])
def get_analysis(analysis_id):
    """Fetch a full analysis. Evicted and unknown ids both answer 404."""
    history = _state().history
    analysis = history.find(analysis_id)
    if analysis is None:
        return jsonify({'success': False, 'message': 'Analysis not found'}), 404
    history.set_current(analysis)
    return jsonify({'success': True, 'analysis': analysis.to_dict()})


@api_bp.route('/history/<analysis_id>/favorite', methods=['POST'])
def toggle_favorite(analysis_id):
    entry = _state().history.toggle_favorite(analysis_id)
    if entry is None:
        return jsonify({'success': False, 'message': 'Contract not found'}), 404
    return jsonify({'success': True, 'history': entry.to_dict()})


@api_bp.route('/history/<analysis_id>', methods=['DELETE'])
def delete_contract(analysis_id):
    """Delete a contract. Unknown ids answer 404, like favorite and lookup."""
    if not _state().history.delete(analysis_id):
        return jsonify({'success': False, 'message': 'Contract not found'}), 404
    return jsonify({'success': True, 'deleted': True})


@api_bp.route('/status', methods=['GET'])
def analysis_status():
    history = _state().history
    current = history.current
    return jsonify({
        'success': True,
        'isAnalyzing': history.is_analyzing,
        'progress': history.analysis_progress,
        'currentAnalysisId': current.id if current else None,
    })


@api_bp.route('/profile', methods=['GET'])
def get_profile():
    quota = _state().quota
    profile = quota.profile
    return jsonify({
        'success': True,
        'profile': {
            'name': profile.name,
            'email': profile.email,
            'joinedAt': profile.joined_at,
            'totalReviews': profile.total_reviews,
        },
        'subscription': quota.status(),
    })


@api_bp.route('/profile', methods=['PUT'])
def update_profile():
    data = _json_body()
    name = data.get('name', '')
    email = data.get('email', '')
    if not isinstance(name, str) or not isinstance(email, str):
        return jsonify({'success': False, 'message': "'name' and 'email' must be strings"}), 400
    _state().quota.set_profile(name.strip(), email.strip())
    return get_profile()


@api_bp.route('/credential', methods=['PUT'])
def update_credential():
    data = _json_body()
    credential = data.get('credential', '')
    if not isinstance(credential, str):
        return jsonify({'success': False, 'message': "'credential' must be a string"}), 400

    quota = _state().quota
    quota.set_credential(credential.strip())
    response = {'success': True, 'subscription': quota.status()}
    if credential.strip() and not looks_like_api_key(credential):
        response['warning'] = "This doesn't look like an OpenAI API key (expected prefix 'sk-')."
    return jsonify(response)


@api_bp.route('/subscription', methods=['GET'])
def get_subscription():
    return jsonify({'success': True, 'subscription': _state().quota.status()})


@api_bp.route('/subscription/upgrade', methods=['POST'])
def upgrade_subscription():
    """Switch to the pro tier (local flag, no payment processing)"""
    quota = _state().quota
    quota.upgrade_to_pro()
    return jsonify({'success': True, 'subscription': quota.status()})
