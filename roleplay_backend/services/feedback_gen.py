import logging
from typing import Dict, List

from pydantic import ValidationError

from roleplay_backend.services.llm_handler import LLMHandler
from roleplay_backend.services.pinyin_annotator import PinyinAnnotator
from roleplay_backend.services.schemas import CoachReport, Correction, VocabItem

logger = logging.getLogger(__name__)

DEFAULT_FEEDBACK = "Great attempt! Keep practicing."
PLACEHOLDER_FEEDBACK = "Coaching notes are unavailable right now. Your result has been saved."


class FeedbackGenerator:
    def __init__(self, llm_handler: LLMHandler, annotator: PinyinAnnotator):
        self.llm = llm_handler
        self.annotator = annotator

    def generate_report(self, history: List[Dict], scenario_title: str, objective: str) -> CoachReport:
        """
        Asks the model for a coach report and validates it.

        Pinyin on corrections and flashcards is always recomputed here;
        whatever the model wrote for it is discarded.
        """
        raw = self.llm.generate_feedback(history, scenario_title, objective)

        corrections = [self._enrich_correction(c) for c in self._coerce_items(raw.get("corrections"), Correction)]
        flashcards = [self._enrich_vocab(v) for v in self._coerce_items(
            raw.get("suggestedFlashcards", raw.get("suggested_flashcards")), VocabItem
        )]
        flashcards = [v for v in flashcards if v.hanzi]

        feedback = raw.get("feedback")
        if not isinstance(feedback, str) or not feedback.strip():
            feedback = DEFAULT_FEEDBACK

        report = CoachReport(
            score=raw.get("score") or 0,
            feedback=feedback.strip(),
            corrections=corrections,
            suggested_flashcards=flashcards,
        )
        logger.info(
            "Coach report for '%s': score=%d, %d corrections, %d flashcards",
            scenario_title, report.score, len(report.corrections), len(report.suggested_flashcards),
        )
        return report

    def placeholder_report(self) -> CoachReport:
        """Used when the coach call fails; the game result still goes through."""
        return CoachReport(score=0, feedback=PLACEHOLDER_FEEDBACK)

    # --- HELPER METHODS ---

    def _coerce_items(self, items, model):
        if not isinstance(items, list):
            return []

        coerced = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                coerced.append(model.model_validate(item))
            except ValidationError as e:
                logger.warning("Dropping malformed %s from coach report: %s", model.__name__, e)
        return coerced

    def _enrich_correction(self, correction: Correction) -> Correction:
        original = correction.original.strip()
        fixed = correction.correction.strip()
        return correction.model_copy(update={
            "original_pinyin": self.annotator.to_pinyin(original) if original else "",
            "correction_pinyin": self.annotator.to_pinyin(fixed) if fixed else "",
        })

    def _enrich_vocab(self, item: VocabItem) -> VocabItem:
        hanzi = item.hanzi.strip()
        return item.model_copy(update={
            "hanzi": hanzi,
            "pinyin": self.annotator.to_pinyin(hanzi) if hanzi else "",
        })
