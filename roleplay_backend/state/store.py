import threading
import uuid
from collections import defaultdict
from typing import Dict, List, Optional

from roleplay_backend.services.errors import ConversationClosedError, NotFoundError
from roleplay_backend.services.schemas import (
    Character,
    CoachReport,
    Conversation,
    ConversationStatus,
    ConversationTurn,
    Flashcard,
    FlashcardFolder,
    Scenario,
    StoredMessage,
    User,
    utcnow,
)


def _new_id() -> str:
    return uuid.uuid4().hex


class ConversationStore:
    """
    In-process persistence service.

    The only thing allowed to mutate conversations, messages, users and
    flashcards. Every public method takes the store lock, so it is safe to
    share one instance across green threads.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self.characters: Dict[str, Character] = {}
        self.scenarios: Dict[str, Scenario] = {}
        self.users: Dict[str, User] = {}
        self.conversations: Dict[str, Conversation] = {}
        self.messages: Dict[str, List[StoredMessage]] = defaultdict(list)
        self.flashcards: Dict[str, Flashcard] = {}
        self.folders: Dict[str, FlashcardFolder] = {}

    # -------------------------------------------------------
    # SCENARIOS / USERS
    # -------------------------------------------------------
    def add_character(self, character: Character) -> Character:
        with self._lock:
            self.characters[character.id] = character
            return character

    def add_scenario(self, scenario: Scenario) -> Scenario:
        with self._lock:
            self.scenarios[scenario.id] = scenario
            return scenario

    def get_scenario(self, scenario_id: str) -> Scenario:
        with self._lock:
            scenario = self.scenarios.get(scenario_id)
        if scenario is None:
            raise NotFoundError(f"Scenario {scenario_id} not found")
        return scenario

    def list_scenarios(self) -> List[Scenario]:
        with self._lock:
            return list(self.scenarios.values())

    def get_or_create_user(self, user_id: str) -> User:
        with self._lock:
            if user_id not in self.users:
                self.users[user_id] = User(id=user_id)
            return self.users[user_id]

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            return self.users.get(user_id)

    def add_completed_scenario(self, user_id: str, scenario_id: str) -> bool:
        """Idempotent. Returns True only when the id was newly added."""
        with self._lock:
            user = self.users.get(user_id)
            if user is None:
                raise NotFoundError(f"User {user_id} not found")
            if scenario_id in user.completed_scenario_ids:
                return False
            user.completed_scenario_ids.append(scenario_id)
            return True

    # -------------------------------------------------------
    # CONVERSATIONS / MESSAGES
    # -------------------------------------------------------
    def create_conversation(self, scenario_id: str, user_id: Optional[str] = None) -> Conversation:
        with self._lock:
            if scenario_id not in self.scenarios:
                raise NotFoundError(f"Scenario {scenario_id} not found")
            if user_id:
                self.get_or_create_user(user_id)
            conversation = Conversation(id=_new_id(), scenario_id=scenario_id, user_id=user_id)
            self.conversations[conversation.id] = conversation
            return conversation.model_copy(deep=True)

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        with self._lock:
            conversation = self.conversations.get(conversation_id)
            return conversation.model_copy(deep=True) if conversation else None

    def list_conversations(self, user_id: str) -> List[Conversation]:
        with self._lock:
            return [
                c.model_copy(deep=True)
                for c in self.conversations.values()
                if c.user_id == user_id
            ]

    def list_messages(self, conversation_id: str) -> List[StoredMessage]:
        """Messages in creation order."""
        with self._lock:
            return [m.model_copy() for m in self.messages.get(conversation_id, [])]

    def append_message(self, conversation_id: str, turn: ConversationTurn) -> StoredMessage:
        with self._lock:
            if conversation_id not in self.conversations:
                raise NotFoundError(f"Conversation {conversation_id} not found")
            message = StoredMessage(
                id=_new_id(),
                conversation_id=conversation_id,
                **turn.model_dump(),
            )
            self.messages[conversation_id].append(message)
            return message.model_copy()

    def delete_messages(self, conversation_id: str) -> int:
        with self._lock:
            removed = self.messages.pop(conversation_id, [])
            return len(removed)

    def finish_conversation(self, conversation_id: str, status: ConversationStatus,
                            report: CoachReport) -> Conversation:
        """Moves an ACTIVE conversation to a terminal status and stores the report fields."""
        with self._lock:
            conversation = self.conversations.get(conversation_id)
            if conversation is None:
                raise NotFoundError(f"Conversation {conversation_id} not found")
            if conversation.is_closed:
                raise ConversationClosedError(
                    f"Conversation {conversation_id} is already {conversation.status.value}"
                )
            if status == ConversationStatus.ACTIVE:
                raise ValueError("finish_conversation needs a terminal status")

            conversation.status = status
            conversation.score = report.score
            conversation.feedback = report.feedback
            conversation.corrections = list(report.corrections)
            conversation.suggested_flashcards = list(report.suggested_flashcards)
            conversation.updated_at = utcnow()
            return conversation.model_copy(deep=True)

    # -------------------------------------------------------
    # FLASHCARDS
    # -------------------------------------------------------
    def create_flashcard(self, user_id: str, hanzi: str, pinyin: str, meaning: str,
                         explanation: str = "", folder_id: Optional[str] = None) -> Flashcard:
        with self._lock:
            self.get_or_create_user(user_id)
            if folder_id:
                self._get_folder(user_id, folder_id)
            card = Flashcard(
                id=_new_id(),
                user_id=user_id,
                hanzi=hanzi,
                pinyin=pinyin,
                meaning=meaning,
                explanation=explanation,
                folder_id=folder_id,
            )
            self.flashcards[card.id] = card
            return card.model_copy()

    def list_flashcards(self, user_id: str, folder_id: Optional[str] = None) -> List[Flashcard]:
        """Newest first."""
        with self._lock:
            cards = [
                c for c in self.flashcards.values()
                if c.user_id == user_id and (folder_id is None or c.folder_id == folder_id)
            ]
        cards.sort(key=lambda c: c.created_at, reverse=True)
        return [c.model_copy() for c in cards]

    def delete_flashcard(self, user_id: str, flashcard_id: str) -> None:
        with self._lock:
            self._get_flashcard(user_id, flashcard_id)
            del self.flashcards[flashcard_id]

    def move_flashcard(self, user_id: str, flashcard_id: str, folder_id: Optional[str]) -> Flashcard:
        with self._lock:
            card = self._get_flashcard(user_id, flashcard_id)
            if folder_id:
                self._get_folder(user_id, folder_id)
            card.folder_id = folder_id
            return card.model_copy()

    def create_folder(self, user_id: str, name: str) -> FlashcardFolder:
        with self._lock:
            self.get_or_create_user(user_id)
            folder = FlashcardFolder(id=_new_id(), user_id=user_id, name=name)
            self.folders[folder.id] = folder
            return folder.model_copy()

    def list_folders(self, user_id: str) -> List[dict]:
        """Folders newest first, each with its card count."""
        with self._lock:
            folders = [f for f in self.folders.values() if f.user_id == user_id]
            counts = defaultdict(int)
            for card in self.flashcards.values():
                if card.user_id == user_id and card.folder_id:
                    counts[card.folder_id] += 1
        folders.sort(key=lambda f: f.created_at, reverse=True)
        return [{**f.model_dump(), "flashcard_count": counts[f.id]} for f in folders]

    def delete_folder(self, user_id: str, folder_id: str) -> None:
        """Deletes the folder; its cards stay but lose their folder."""
        with self._lock:
            self._get_folder(user_id, folder_id)
            del self.folders[folder_id]
            for card in self.flashcards.values():
                if card.folder_id == folder_id:
                    card.folder_id = None

    def _get_flashcard(self, user_id: str, flashcard_id: str) -> Flashcard:
        card = self.flashcards.get(flashcard_id)
        if card is None or card.user_id != user_id:
            raise NotFoundError(f"Flashcard {flashcard_id} not found")
        return card

    def _get_folder(self, user_id: str, folder_id: str) -> FlashcardFolder:
        folder = self.folders.get(folder_id)
        if folder is None or folder.user_id != user_id:
            raise NotFoundError(f"Folder {folder_id} not found")
        return folder

