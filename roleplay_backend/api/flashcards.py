from typing import List, Optional

from flask import Blueprint, jsonify, request
from pydantic import BaseModel, Field

from roleplay_backend.api.common import current_user_id, get_orchestrator, request_json

flashcards_bp = Blueprint('flashcards', __name__)


class FlashcardIn(BaseModel):
    hanzi: str = Field(min_length=1)
    pinyin: str = ""
    meaning: str = ""
    explanation: str = ""
    folder_id: Optional[str] = None


class FlashcardBatch(BaseModel):
    flashcards: List[FlashcardIn]


class FolderIn(BaseModel):
    name: str = Field(min_length=1)


class MoveIn(BaseModel):
    folder_id: Optional[str] = None


def _save(user_id, card: FlashcardIn):
    orchestrator = get_orchestrator()
    # Fill in pinyin when the client only sent characters
    pinyin = card.pinyin or orchestrator.annotator.to_pinyin(card.hanzi)
    return orchestrator.store.create_flashcard(
        user_id, card.hanzi, pinyin, card.meaning, card.explanation, card.folder_id
    )


@flashcards_bp.route('', methods=['GET'])
@flashcards_bp.route('/', methods=['GET'])
def list_flashcards():
    user_id = current_user_id()
    cards = get_orchestrator().store.list_flashcards(user_id, request.args.get('folder_id'))
    return jsonify({'status': 'success', 'flashcards': [c.model_dump(mode='json') for c in cards]})


@flashcards_bp.route('', methods=['POST'])
@flashcards_bp.route('/', methods=['POST'])
def save_flashcard():
    user_id = current_user_id()
    card = _save(user_id, FlashcardIn.model_validate(request_json()))
    return jsonify({'status': 'success', 'flashcard': card.model_dump(mode='json')}), 201


@flashcards_bp.route('/batch', methods=['POST'])
def save_flashcards_batch():
    """Typically the suggested flashcards from a coach report."""
    user_id = current_user_id()
    batch = FlashcardBatch.model_validate(request_json())
    created = [_save(user_id, card) for card in batch.flashcards]
    return jsonify({'status': 'success', 'count': len(created)}), 201


@flashcards_bp.route('/<flashcard_id>', methods=['DELETE'])
def delete_flashcard(flashcard_id):
    get_orchestrator().store.delete_flashcard(current_user_id(), flashcard_id)
    return jsonify({'status': 'success'})


@flashcards_bp.route('/<flashcard_id>/folder', methods=['PUT'])
def move_flashcard(flashcard_id):
    payload = MoveIn.model_validate(request_json())
    card = get_orchestrator().store.move_flashcard(current_user_id(), flashcard_id, payload.folder_id)
    return jsonify({'status': 'success', 'flashcard': card.model_dump(mode='json')})


# Folder routes
@flashcards_bp.route('/folders', methods=['GET'])
def list_folders():
    folders = get_orchestrator().store.list_folders(current_user_id())
    return jsonify({'status': 'success', 'folders': [
        {**f, 'created_at': f['created_at'].isoformat()} for f in folders
    ]})


@flashcards_bp.route('/folders', methods=['POST'])
def create_folder():
    payload = FolderIn.model_validate(request_json())
    folder = get_orchestrator().store.create_folder(current_user_id(), payload.name)
    return jsonify({'status': 'success', 'folder': folder.model_dump(mode='json')}), 201


@flashcards_bp.route('/folders/<folder_id>', methods=['DELETE'])
def delete_folder(folder_id):
    get_orchestrator().store.delete_folder(current_user_id(), folder_id)
    return jsonify({'status': 'success'})
