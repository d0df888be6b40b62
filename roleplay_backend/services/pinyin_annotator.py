import re
from typing import Optional

from pypinyin import pinyin, Style


class PinyinAnnotator:
    """Full-sentence Hanzi -> tone-marked pinyin, backed by pypinyin."""

    def __init__(self, style: Style = Style.TONE):
        self.style = style

    def to_pinyin(self, text: Optional[str]) -> str:
        text = (text or "").strip()
        if not text:
            return ""

        syllables = [item[0] for item in pinyin(text, style=self.style) if item and item[0].strip()]
        return " ".join(s.strip() for s in syllables)

    def is_chinese(self, text: str) -> bool:
        """Check if the string contains at least one Chinese character"""
        return bool(re.search(r"[\u4e00-\u9fff]", text or ""))


# Singleton instance
_annotator = None


def get_pinyin_annotator() -> PinyinAnnotator:
    """Get or create the singleton annotator"""
    global _annotator
    if _annotator is None:
        _annotator = PinyinAnnotator()
    return _annotator
