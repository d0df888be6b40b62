"""
Tests for the typed-answer pinyin comparison
"""
from roleplay_backend.utils.pinyin_compare import compare_pinyin, normalize_pinyin


class TestNormalizePinyin:

    def test_lowercases_and_strips_whitespace(self):
        assert normalize_pinyin(" Ni3  Hao3\t") == "ni3hao3"


class TestComparePinyin:

    def test_space_insensitive(self):
        assert compare_pinyin("ni3 hao3", "ni3hao3").is_correct is True

    def test_case_insensitive(self):
        assert compare_pinyin("Ni3 Hao3", "ni3hao3").is_correct is True

    def test_exact_match_marks_every_char_correct(self):
        result = compare_pinyin("nihao", "nihao")

        assert result.is_correct is True
        assert [d.char for d in result.differences] == list("nihao")
        assert all(d.is_correct for d in result.differences)

    def test_flags_only_the_mismatched_char(self):
        result = compare_pinyin("nihap", "nihao")

        assert result.is_correct is False
        assert [d.is_correct for d in result.differences] == [True, True, True, True, False]
        assert result.differences[-1].char == "p"
        assert result.differences[-1].position == 4

    def test_diff_follows_user_input_not_reference(self):
        """Spaces give no entries; missing reference chars give no entries"""
        result = compare_pinyin("ni hao", "nihaoma")

        assert result.is_correct is False
        assert len(result.differences) == 5
        assert all(d.is_correct for d in result.differences)

    def test_positions_skip_spaces(self):
        result = compare_pinyin("Ni Hao", "nihao")

        assert [d.position for d in result.differences] == [0, 1, 2, 3, 4]
        # Original casing is kept for display
        assert result.differences[0].char == "N"
        assert result.is_correct is True

    def test_user_input_longer_than_reference(self):
        result = compare_pinyin("nihaoma", "nihao")

        assert result.is_correct is False
        assert len(result.differences) == 7
        assert [d.is_correct for d in result.differences[5:]] == [False, False]

    def test_tone_marks_are_significant(self):
        """Numeric and accented forms are not treated as equal"""
        assert compare_pinyin("ni3hao3", "nǐhǎo").is_correct is False
        assert compare_pinyin("nǐ hǎo", "nǐhǎo").is_correct is True

    def test_empty_input(self):
        result = compare_pinyin("", "nihao")

        assert result.is_correct is False
        assert result.differences == []

    def test_tab_in_input_does_not_flag_last_char(self):
        """Whitespace other than spaces still counts toward the cursor"""
        result = compare_pinyin("ni\thao", "nihao")

        assert result.is_correct is True
        assert all(d.is_correct for d in result.differences)
        assert [d.char for d in result.differences] == ["n", "i", "\t", "h", "a", "o"]
