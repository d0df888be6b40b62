from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConversationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


CORRECTION_CATEGORIES = ("Grammar", "Word Choice", "Spelling", "Other")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# One chat bubble. pinyin/translation are only filled for assistant turns.
class ConversationTurn(BaseModel):
    role: Role
    content: str
    pinyin: str = ""
    translation: str = ""

    def to_chat_message(self) -> dict:
        return {"role": self.role.value, "content": self.content}


class StoredMessage(ConversationTurn):
    id: str
    conversation_id: str
    created_at: datetime = Field(default_factory=utcnow)


class Character(BaseModel):
    id: str
    name: str
    role: str
    personality_prompt: str


class Scenario(BaseModel):
    id: str
    title: str
    description: str = ""
    objective: str
    difficulty: str = "Beginner"
    location: str = ""
    character: Optional[Character] = None


class User(BaseModel):
    id: str
    completed_scenario_ids: List[str] = Field(default_factory=list)


# Maps 1:1 to a "Correction" row in the coach report
class Correction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    original: str = ""
    correction: str = ""
    category: str = Field("Other", description="Grammar | Word Choice | Spelling | Other")
    explanation: str = ""
    translation: str = ""
    original_pinyin: str = Field("", description="Computed locally, never taken from the model")
    correction_pinyin: str = Field("", description="Computed locally, never taken from the model")

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value):
        if not isinstance(value, str):
            return "Other"
        for known in CORRECTION_CATEGORIES:
            if value.strip().lower().replace("_", " ") == known.lower():
                return known
        if value.strip().lower() == "wordchoice":
            return "Word Choice"
        return "Other"

    @field_validator("original", "correction", "explanation", "translation", mode="before")
    @classmethod
    def _coerce_text(cls, value):
        return "" if value is None else str(value)


# Maps 1:1 to a suggested flashcard in the coach report
class VocabItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    hanzi: str = ""
    pinyin: str = ""
    meaning: str = ""
    explanation: str = ""

    @field_validator("hanzi", "pinyin", "meaning", "explanation", mode="before")
    @classmethod
    def _coerce_text(cls, value):
        return "" if value is None else str(value)


class CoachReport(BaseModel):
    score: int = Field(0, ge=0, le=100)
    feedback: str = ""
    corrections: List[Correction] = Field(default_factory=list)
    suggested_flashcards: List[VocabItem] = Field(default_factory=list)

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, value):
        try:
            score = int(round(float(value)))
        except (TypeError, ValueError):
            return 0
        return max(0, min(100, score))

    def to_wire(self) -> dict:
        """camelCase shape the web client reads from the ---REPORT--- block."""
        return {
            "score": self.score,
            "feedback": self.feedback,
            "corrections": [
                {
                    "category": c.category,
                    "original": c.original,
                    "correction": c.correction,
                    "translation": c.translation,
                    "explanation": c.explanation,
                    "originalPinyin": c.original_pinyin,
                    "correctionPinyin": c.correction_pinyin,
                }
                for c in self.corrections
            ],
            "suggestedFlashcards": [v.model_dump() for v in self.suggested_flashcards],
        }


class ReplyMetadata(BaseModel):
    translation: str = ""
    status: ConversationStatus = ConversationStatus.ACTIVE


class Conversation(BaseModel):
    id: str
    scenario_id: str
    user_id: Optional[str] = None
    status: ConversationStatus = ConversationStatus.ACTIVE
    score: Optional[int] = None
    feedback: Optional[str] = None
    corrections: List[Correction] = Field(default_factory=list)
    suggested_flashcards: List[VocabItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_closed(self) -> bool:
        return self.status != ConversationStatus.ACTIVE


class TurnResult(BaseModel):
    assistant_turn: ConversationTurn
    status: ConversationStatus
    coach_report: Optional[CoachReport] = None


class Flashcard(BaseModel):
    id: str
    user_id: str
    hanzi: str
    pinyin: str
    meaning: str
    explanation: str = ""
    folder_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class FlashcardFolder(BaseModel):
    id: str
    user_id: str
    name: str
    created_at: datetime = Field(default_factory=utcnow)


class Hint(BaseModel):
    model_config = ConfigDict(extra="ignore")

    hanzi: str = ""
    pinyin: str = ""
    meaning: str = ""

    @field_validator("hanzi", "pinyin", "meaning", mode="before")
    @classmethod
    def _coerce_text(cls, value):
        return "" if value is None else str(value)
