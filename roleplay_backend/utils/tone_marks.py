import re

# Index 0 and 5 are the unmarked (neutral tone) forms.
TONE_MAP = {
    'a': ['a', 'ā', 'á', 'ǎ', 'à', 'a'],
    'e': ['e', 'ē', 'é', 'ě', 'è', 'e'],
    'i': ['i', 'ī', 'í', 'ǐ', 'ì', 'i'],
    'o': ['o', 'ō', 'ó', 'ǒ', 'ò', 'o'],
    'u': ['u', 'ū', 'ú', 'ǔ', 'ù', 'u'],
    'ü': ['ü', 'ǖ', 'ǘ', 'ǚ', 'ǜ', 'ü'],
    'A': ['A', 'Ā', 'Á', 'Ǎ', 'À', 'A'],
    'E': ['E', 'Ē', 'É', 'Ě', 'È', 'E'],
    'I': ['I', 'Ī', 'Í', 'Ǐ', 'Ì', 'I'],
    'O': ['O', 'Ō', 'Ó', 'Ǒ', 'Ò', 'O'],
    'U': ['U', 'Ū', 'Ú', 'Ǔ', 'Ù', 'U'],
    'Ü': ['Ü', 'Ǖ', 'Ǘ', 'Ǚ', 'Ǜ', 'Ü'],
}

# 1-3 vowels immediately followed by a tone number
SYLLABLE_RE = re.compile(r'([aeiouüAEIOUÜ]{1,3})([1-5])')


def _tone_index(vowels: str) -> int:
    """
    Pick the vowel that carries the mark:
      1. 'a' if present
      2. else 'e'
      3. else 'o' when the run is exactly 'ou'
      4. else the last vowel (covers iu, ui)
    """
    lower = vowels.lower()
    if 'a' in lower:
        return lower.index('a')
    if 'e' in lower:
        return lower.index('e')
    if lower == 'ou':
        return 0
    return len(vowels) - 1


def _mark_syllable(match: re.Match) -> str:
    vowels, tone = match.group(1), int(match.group(2))
    idx = _tone_index(vowels)
    target = vowels[idx]

    accented = TONE_MAP.get(target)
    if accented is None:
        return match.group(0)

    return vowels[:idx] + accented[tone] + vowels[idx + 1:]


def convert_to_tone_marks(text: str) -> str:
    """
    Converts numeric pinyin ("ni3 hao3") to tone marks ("nǐ hǎo").

    Anything that isn't a vowel run followed by a tone digit passes through
    untouched, so already-accented text comes back unchanged.
    """
    if not text:
        return text

    # 'v' and 'u:' are the ASCII stand-ins for ü
    processed = text.replace('v', 'ü').replace('V', 'Ü')
    processed = processed.replace('u:', 'ü').replace('U:', 'Ü')

    return SYLLABLE_RE.sub(_mark_syllable, processed)
