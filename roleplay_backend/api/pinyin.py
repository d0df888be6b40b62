# roleplay_backend/api/pinyin.py
from flask import Blueprint, jsonify
from pydantic import BaseModel

from roleplay_backend.api.common import request_json
from roleplay_backend.utils.pinyin_compare import compare_pinyin
from roleplay_backend.utils.tone_marks import convert_to_tone_marks

pinyin_bp = Blueprint('pinyin', __name__)


class ConvertRequest(BaseModel):
    text: str


class CompareRequest(BaseModel):
    answer: str
    expected: str
    convert: bool = True


@pinyin_bp.route('/convert', methods=['POST'])
def convert():
    """
    Request body: {"text": "ni3 hao3"}
    Response: {"success": true, "text": "ni3 hao3", "converted": "nǐ hǎo"}
    """
    payload = ConvertRequest.model_validate(request_json())
    return jsonify({
        'success': True,
        'text': payload.text,
        'converted': convert_to_tone_marks(payload.text),
    })


@pinyin_bp.route('/compare', methods=['POST'])
def compare():
    """
    Checks a typed flashcard answer.

    With "convert" on (default) both sides go through the tone-mark
    converter first, so "ni3hao3" matches "nǐ hǎo".
    """
    payload = CompareRequest.model_validate(request_json())

    answer, expected = payload.answer, payload.expected
    if payload.convert:
        answer = convert_to_tone_marks(answer)
        expected = convert_to_tone_marks(expected)

    result = compare_pinyin(answer, expected)
    return jsonify({
        'success': True,
        'answer': answer,
        'expected': expected,
        **result.model_dump(),
    })
