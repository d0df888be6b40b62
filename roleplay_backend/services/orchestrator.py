import json
import logging
import threading
import weakref
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, NamedTuple, Optional, Tuple

from roleplay_backend.services.errors import (
    ConversationClosedError,
    NotFoundError,
    PersistenceError,
    TutorError,
    UpstreamGenerationError,
)
from roleplay_backend.services.feedback_gen import FeedbackGenerator
from roleplay_backend.services.llm_handler import LLMHandler, REPORT_DELIMITER
from roleplay_backend.services.pinyin_annotator import PinyinAnnotator
from roleplay_backend.services.reply_parser import parse_reply
from roleplay_backend.services.schemas import (
    CoachReport,
    Conversation,
    ConversationStatus,
    ConversationTurn,
    Hint,
    Role,
    Scenario,
    StoredMessage,
    TurnResult,
)
from roleplay_backend.state.store import ConversationStore

logger = logging.getLogger(__name__)

# Above this many turns the older ones are folded into a rolling summary
SUMMARY_THRESHOLD = 6
# Turns forwarded verbatim to the model once summarizing kicks in
HISTORY_WINDOW = 6


class ConversationLocks:
    """
    One lock per conversation id, so turns for a conversation never interleave.

    Entries are weak: a lock lives only while some turn holds a reference to
    it, so idle or abandoned conversations leave nothing behind.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = weakref.WeakValueDictionary()

    def get(self, conversation_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(conversation_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[conversation_id] = lock
            return lock

    def discard(self, conversation_id: str) -> None:
        with self._guard:
            self._locks.pop(conversation_id, None)

    @contextmanager
    def hold(self, conversation_id: str):
        with self.get(conversation_id):
            yield


class TurnContext(NamedTuple):
    conversation: Conversation
    scenario: Scenario
    history: List[Dict]
    window: List[Dict]
    summary: Optional[str]


def compact_history(history: List[Dict]) -> Tuple[List[Dict], List[Dict]]:
    """Split into (older turns to summarize, recent window). Older is empty below the threshold."""
    if len(history) <= SUMMARY_THRESHOLD:
        return [], list(history)
    return history[:-HISTORY_WINDOW], history[-HISTORY_WINDOW:]


class ConversationOrchestrator:
    """
    Runs one scenario conversation turn by turn.

    ACTIVE -> ACTIVE on a normal turn, ACTIVE -> COMPLETED / FAILED when the
    character reports the objective resolved. Terminal conversations accept
    no more turns.
    """

    def __init__(self, store: ConversationStore, llm: LLMHandler, feedback: FeedbackGenerator,
                 annotator: PinyinAnnotator, locks: Optional[ConversationLocks] = None):
        self.store = store
        self.llm = llm
        self.feedback = feedback
        self.annotator = annotator
        self.locks = locks or ConversationLocks()

    # -------------------------------------------------------
    # PUBLIC: Conversation lifecycle
    # -------------------------------------------------------
    def start_conversation(self, scenario_id: str, user_id: Optional[str] = None) -> Conversation:
        scenario = self.store.get_scenario(scenario_id)
        if scenario.character is None:
            raise NotFoundError(f"Character for scenario {scenario_id} not found")

        conversation = self._persist(self.store.create_conversation, scenario.id, user_id)
        logger.info("Started conversation %s for scenario '%s'", conversation.id, scenario.title)
        return conversation

    def get_conversation(self, conversation_id: str) -> Tuple[Conversation, List[StoredMessage]]:
        conversation = self.store.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return conversation, self.store.list_messages(conversation_id)

    # -------------------------------------------------------
    # PUBLIC: Turns
    # -------------------------------------------------------
    def submit_utterance(self, conversation_id: str, user_text: str) -> TurnResult:
        """Batch mode: one blocking model call, returns the finished turn."""
        with self.locks.hold(conversation_id):
            context = self._prepare_turn(conversation_id, user_text)
            raw = self.llm.chat(
                context.window,
                context.scenario.character.personality_prompt,
                context.scenario.objective,
                context.summary,
            )
            return self._complete_turn(context, raw)

    def stream_utterance(self, conversation_id: str, user_text: str,
                         on_result: Optional[Callable[[TurnResult], None]] = None) -> Iterator[str]:
        """
        Streaming mode: yields the model's raw text as it arrives.

        The buffer is only parsed once the model stream ends. If a report is
        produced it follows as ---REPORT---<json>. Closing the iterator early
        abandons the turn without saving an assistant message.
        """
        with self.locks.hold(conversation_id):
            context = self._prepare_turn(conversation_id, user_text)
            chunks = self.llm.chat_stream(
                context.window,
                context.scenario.character.personality_prompt,
                context.scenario.objective,
                context.summary,
            )

            buffer = []
            try:
                for chunk in chunks:
                    buffer.append(chunk)
                    yield chunk
            finally:
                close = getattr(chunks, "close", None)
                if close is not None:
                    close()

            result = self._complete_turn(context, "".join(buffer))
            if on_result is not None:
                on_result(result)

            if result.coach_report is not None:
                yield REPORT_DELIMITER + json.dumps(
                    report_payload(result), ensure_ascii=False
                )

    def suggest_hints(self, conversation_id: str) -> List[Hint]:
        conversation, messages = self.get_conversation(conversation_id)
        scenario = self.store.get_scenario(conversation.scenario_id)
        history = [m.to_chat_message() for m in messages]

        hints = []
        for raw in self.llm.generate_hints(history, scenario.title, scenario.objective)[:3]:
            hint = Hint.model_validate(raw)
            if not hint.hanzi:
                continue
            hints.append(hint.model_copy(update={"pinyin": self.annotator.to_pinyin(hint.hanzi)}))
        return hints

    # -------------------------------------------------------
    # HELPERS
    # -------------------------------------------------------
    def _prepare_turn(self, conversation_id: str, user_text: str) -> TurnContext:
        conversation = self.store.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        if conversation.is_closed:
            raise ConversationClosedError(
                f"Conversation {conversation_id} is already {conversation.status.value}"
            )

        scenario = self.store.get_scenario(conversation.scenario_id)
        if scenario.character is None:
            raise NotFoundError(f"Character for scenario {scenario.id} not found")

        previous = self.store.list_messages(conversation_id)

        # Saved before generation so the user's words survive a model failure
        user_turn = ConversationTurn(role=Role.USER, content=user_text)
        self._persist(self.store.append_message, conversation_id, user_turn)

        history = [m.to_chat_message() for m in previous]
        history.append(user_turn.to_chat_message())

        older, window = compact_history(history)
        summary = None
        if older:
            summary = self.llm.summarize(older)
            logger.info(
                "Conversation %s: summarized %d older turns, forwarding last %d",
                conversation_id, len(older), len(window),
            )

        return TurnContext(conversation, scenario, history, window, summary)

    def _complete_turn(self, context: TurnContext, raw: str) -> TurnResult:
        parsed = parse_reply(raw)
        conversation_id = context.conversation.id

        assistant_turn = ConversationTurn(
            role=Role.ASSISTANT,
            content=parsed.content,
            pinyin=self.annotator.to_pinyin(parsed.content),
            translation=parsed.metadata.translation,
        )
        self._persist(self.store.append_message, conversation_id, assistant_turn)

        status = parsed.metadata.status
        if status == ConversationStatus.ACTIVE:
            return TurnResult(assistant_turn=assistant_turn, status=status)

        report = self._coach_report(context, assistant_turn)
        self._finish(context, status, report)
        return TurnResult(assistant_turn=assistant_turn, status=status, coach_report=report)

    def _coach_report(self, context: TurnContext, assistant_turn: ConversationTurn) -> CoachReport:
        full_history = [*context.history, assistant_turn.to_chat_message()]
        try:
            return self.feedback.generate_report(
                full_history, context.scenario.title, context.scenario.objective
            )
        except UpstreamGenerationError:
            logger.exception(
                "Coach report failed for conversation %s, saving placeholder", context.conversation.id
            )
            return self.feedback.placeholder_report()

    def _finish(self, context: TurnContext, status: ConversationStatus, report: CoachReport) -> None:
        conversation = context.conversation

        if status == ConversationStatus.COMPLETED and conversation.user_id:
            self._persist(self.store.get_or_create_user, conversation.user_id)
            added = self._persist(self.store.add_completed_scenario, conversation.user_id, context.scenario.id)
            if added:
                logger.info("User %s completed scenario '%s'", conversation.user_id, context.scenario.id)

            # Only the report survives a completed run
            removed = self._persist(self.store.delete_messages, conversation.id)
            logger.info("Conversation %s: removed %d messages after completion", conversation.id, removed)

        self._persist(self.store.finish_conversation, conversation.id, status, report)
        self.locks.discard(conversation.id)
        logger.info("Conversation %s finished with status %s", conversation.id, status.value)

    def _persist(self, operation, *args):
        try:
            return operation(*args)
        except TutorError:
            raise
        except Exception as e:
            logger.exception("Persistence call %s failed", getattr(operation, "__name__", operation))
            raise PersistenceError() from e


def report_payload(result: TurnResult) -> Dict:
    """Metadata merged with the enriched coach report, as sent after ---REPORT---."""
    payload = {
        "translation": result.assistant_turn.translation,
        "status": result.status.value,
    }
    if result.coach_report is not None:
        payload.update(result.coach_report.to_wire())
    return payload
