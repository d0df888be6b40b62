import re
from typing import List

from pydantic import BaseModel, Field


class CharDiff(BaseModel):
    char: str
    is_correct: bool
    position: int


class PinyinComparison(BaseModel):
    is_correct: bool
    differences: List[CharDiff] = Field(default_factory=list)


def normalize_pinyin(text: str) -> str:
    """Lowercase and drop all whitespace."""
    return re.sub(r'\s+', '', text.lower())


def compare_pinyin(user_input: str, correct_pinyin: str) -> PinyinComparison:
    """
    Compares what the user typed against the reference pinyin.

    The diff walks the user's original input (spaces skipped) so the UI can
    colour exactly what was typed. Reference characters past the end of the
    user's input produce no entries. Positions past the end of both strings
    (non-space whitespace shifts the cursor) count as matching.
    """
    normalized = normalize_pinyin(user_input)
    correct = normalize_pinyin(correct_pinyin)

    differences = []
    cursor = 0

    for original_char in user_input:
        if original_char == ' ':
            continue

        typed = normalized[cursor] if cursor < len(normalized) else None
        expected = correct[cursor] if cursor < len(correct) else None

        differences.append(CharDiff(
            char=original_char,
            is_correct=typed == expected,
            position=cursor,
        ))
        cursor += 1

    return PinyinComparison(is_correct=normalized == correct, differences=differences)
