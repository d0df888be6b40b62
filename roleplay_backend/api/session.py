from flask import Blueprint, jsonify

from roleplay_backend.api.common import StartRequest, current_user_id, get_orchestrator, request_json

session_bp = Blueprint('session', __name__)


@session_bp.route('/scenarios', methods=['GET'])
def list_scenarios():
    scenarios = get_orchestrator().store.list_scenarios()
    return jsonify({
        'status': 'success',
        'scenarios': [s.model_dump(mode='json') for s in scenarios],
    })


@session_bp.route('/start', methods=['POST'])
def start_session():
    """
    Request body: {"scenario_id": "boba-craving", "user_id": "optional"}
    The user id may also come from the X-User-Id header.
    """
    data = request_json()
    if not data.get('user_id') and not data.get('userId'):
        data['user_id'] = current_user_id(required=False)

    payload = StartRequest.model_validate(data)
    conversation = get_orchestrator().start_conversation(payload.scenario_id, payload.user_id)

    return jsonify({
        'status': 'success',
        'conversation': conversation.model_dump(mode='json'),
    }), 201


@session_bp.route('/<conversation_id>', methods=['GET'])
def get_session(conversation_id):
    conversation, messages = get_orchestrator().get_conversation(conversation_id)
    return jsonify({
        'status': 'success',
        'conversation': conversation.model_dump(mode='json'),
        'messages': [m.model_dump(mode='json') for m in messages],
    })
