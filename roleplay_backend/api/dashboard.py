from flask import Blueprint, jsonify

from roleplay_backend.api.common import current_user_id, get_orchestrator
from roleplay_backend.services.dashboard import get_dashboard_stats

dashboard_bp = Blueprint('dashboard', __name__)


@dashboard_bp.route('', methods=['GET'])
@dashboard_bp.route('/', methods=['GET'])
def dashboard():
    stats = get_dashboard_stats(get_orchestrator().store, current_user_id())
    return jsonify({'status': 'success', 'stats': stats})
