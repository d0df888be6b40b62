import json
from unittest.mock import Mock

import pytest

from roleplay_backend.app import create_app
from roleplay_backend.services.feedback_gen import FeedbackGenerator
from roleplay_backend.services.llm_handler import LLMHandler
from roleplay_backend.services.orchestrator import ConversationOrchestrator
from roleplay_backend.services.pinyin_annotator import PinyinAnnotator
from roleplay_backend.services.schemas import ConversationTurn, Role
from roleplay_backend.state.seed import seed_scenarios
from roleplay_backend.state.store import ConversationStore


@pytest.fixture
def make_reply():
    """Builds a raw model reply in the ---METADATA--- wire format."""
    def _make(text, translation="", status="ACTIVE"):
        metadata = json.dumps({"translation": translation, "status": status}, ensure_ascii=False)
        return f"{text}---METADATA---{metadata}"
    return _make


@pytest.fixture
def coach_payload():
    """Loosely-typed coach report as the model sends it."""
    return {
        "score": 85,
        "feedback": "Nice job ordering your drink.",
        "corrections": [
            {
                "category": "Grammar",
                "original": " 我要一个奶茶 ",
                "correction": "我要一杯奶茶",
                "translation": "I want a cup of milk tea",
                "explanation": "Drinks take the measure word 杯",
                "originalPinyin": "made up by the model",
            }
        ],
        "suggestedFlashcards": [
            {"hanzi": "奶茶", "pinyin": "wrong", "meaning": "milk tea", "explanation": "Order it anywhere"}
        ],
    }


@pytest.fixture
def store():
    store = ConversationStore()
    seed_scenarios(store)
    return store


@pytest.fixture
def llm(coach_payload):
    llm = Mock(spec=LLMHandler)
    llm.summarize.return_value = "The user greeted Mei and asked about drinks."
    llm.generate_feedback.return_value = coach_payload
    return llm


@pytest.fixture
def annotator():
    return PinyinAnnotator()


@pytest.fixture
def orchestrator(store, llm, annotator):
    return ConversationOrchestrator(store, llm, FeedbackGenerator(llm, annotator), annotator)


@pytest.fixture
def conversation(orchestrator):
    return orchestrator.start_conversation("boba-craving", user_id="user-1")


@pytest.fixture
def add_turns(store):
    """Appends n alternating user/assistant messages to a conversation."""
    def _add(conversation_id, n):
        for i in range(n):
            role = Role.USER if i % 2 == 0 else Role.ASSISTANT
            store.append_message(conversation_id, ConversationTurn(role=role, content=f"第{i}句"))
    return _add


@pytest.fixture
def app(orchestrator):
    app = create_app(orchestrator=orchestrator, seed=False, async_mode="threading")
    app.config.update(TESTING=True)
    return app


@pytest.fixture
def client(app):
    return app.test_client()
