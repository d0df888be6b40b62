import logging

from flask import Blueprint, Response, jsonify
from pydantic import BaseModel, Field

from roleplay_backend.api.common import ConversationRef, TurnRequest, get_orchestrator, request_json
from roleplay_backend.services.errors import TutorError
from roleplay_backend.services.orchestrator import report_payload

logger = logging.getLogger(__name__)

chat_bp = Blueprint('chat', __name__)


class TranslateRequest(BaseModel):
    text: str = Field(min_length=1)


@chat_bp.route('', methods=['POST'])
@chat_bp.route('/', methods=['POST'])
def chat():
    """
    Batch turn.

    Request body: {"conversation_id": "...", "text": "我想要一杯奶茶"}
    """
    payload = TurnRequest.model_validate(request_json())
    result = get_orchestrator().submit_utterance(payload.conversation_id, payload.text)

    return jsonify({
        'status': 'success',
        'message': result.assistant_turn.model_dump(mode='json'),
        'conversation_status': result.status.value,
        'report': report_payload(result) if result.coach_report else None,
    })


@chat_bp.route('/stream', methods=['POST'])
def chat_stream():
    """
    Streaming turn. The body is plain text:
    <reply>---METADATA---<json>[---REPORT---<json>]
    """
    payload = TurnRequest.model_validate(request_json())
    stream = get_orchestrator().stream_utterance(payload.conversation_id, payload.text)

    # Pull the first chunk here so lookup and model failures still get a proper status code
    first = next(stream, None)

    def generate():
        try:
            if first is not None:
                yield first
            for chunk in stream:
                yield chunk
        except TutorError as e:
            logger.error("Streaming error in %s: %s", payload.conversation_id, e)
        finally:
            stream.close()

    return Response(
        generate(),
        content_type='text/plain; charset=utf-8',
        headers={'Cache-Control': 'no-cache'},
    )


@chat_bp.route('/hints', methods=['POST'])
def hints():
    payload = ConversationRef.model_validate(request_json())
    suggestions = get_orchestrator().suggest_hints(payload.conversation_id)
    return jsonify({
        'status': 'success',
        'hints': [h.model_dump() for h in suggestions],
    })


@chat_bp.route('/translate', methods=['POST'])
def translate():
    """Pinyin + meaning for a highlighted snippet of a reply."""
    payload = TranslateRequest.model_validate(request_json())
    orchestrator = get_orchestrator()

    annotator = orchestrator.annotator
    pinyin = annotator.to_pinyin(payload.text) if annotator.is_chinese(payload.text) else ""

    result = orchestrator.llm.translate_selection(payload.text)
    return jsonify({
        'status': 'success',
        'text': payload.text,
        'pinyin': pinyin,
        'meaning': result.get('meaning', ''),
    })
