import logging

from flask import request
from flask_socketio import emit, join_room
from pydantic import ValidationError

from roleplay_backend.api.common import TurnRequest, get_orchestrator
from roleplay_backend.app import socketio
from roleplay_backend.services.errors import TutorError
from roleplay_backend.services.orchestrator import report_payload

logger = logging.getLogger(__name__)


@socketio.on('connect')
def handle_connect():
    logger.info("Client connected: %s", request.sid)


@socketio.on('disconnect')
def handle_disconnect(*args):
    logger.info("Client disconnected: %s", request.sid)


@socketio.on('join_conversation')
def join_conversation(data):
    conversation_id = (data or {}).get('conversation_id')
    if not conversation_id:
        emit('reply_error', {'error': 'Missing conversation_id'})
        return

    join_room(conversation_id)
    emit('conversation_joined', {'conversation_id': conversation_id}, room=conversation_id)


@socketio.on('send_message')
def send_message(data):
    """
    Streams one turn over the socket:
      reply_chunk {text} ... then reply_done {message, status, report} or reply_error {error}
    """
    try:
        payload = TurnRequest.model_validate(data or {})
    except ValidationError:
        emit('reply_error', {'error': 'Invalid request'})
        return

    conversation_id = payload.conversation_id
    results = []

    stream = get_orchestrator().stream_utterance(conversation_id, payload.text, on_result=results.append)
    try:
        for chunk in stream:
            # The ---REPORT--- tail goes out with reply_done instead
            if results:
                break
            emit('reply_chunk', {'conversation_id': conversation_id, 'text': chunk})
    except TutorError as e:
        logger.error("Socket turn failed for %s: %s", conversation_id, e)
        message = e.public_message if e.status_code >= 500 else str(e)
        emit('reply_error', {'conversation_id': conversation_id, 'error': message})
        return
    finally:
        stream.close()

    result = results[0]
    emit('reply_done', {
        'conversation_id': conversation_id,
        'message': result.assistant_turn.model_dump(mode='json'),
        'status': result.status.value,
        'report': report_payload(result) if result.coach_report else None,
    })


@socketio.on_error_default
def default_error_handler(e):
    logger.exception("SocketIO error: %s", e)
