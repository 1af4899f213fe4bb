"""
Tests for knowhub/utils/text.py and model-reply JSON parsing.
"""

import pytest

from knowhub.services.llm import parse_json_reply
from knowhub.utils.text import excerpt, normalize_query, title_case, truncate_words


class TestText:
    def test_normalize_query(self):
        assert normalize_query("  What   IS\tOC4IDS? ") == "what is oc4ids?"

    def test_excerpt_truncates_with_ellipsis(self):
        text = "word " * 100
        result = excerpt(text, 20)
        assert result.endswith("…")
        assert len(result) <= 21

    def test_excerpt_falls_back_on_empty_text(self):
        assert excerpt("   ", 180, fallback="Title") == "Title"

    def test_title_case(self):
        assert title_case("SHIFT to IMPACT") == "Shift To Impact"
        assert title_case("   ") == "Contextual Collection"

    def test_truncate_words(self):
        assert truncate_words("one two three four five six", 5) == "one two three four five"
        assert truncate_words("short label", 5) == "short label"


class TestParseJsonReply:
    def test_plain_json(self):
        assert parse_json_reply('[{"a": 1}]') == [{"a": 1}]

    def test_fenced_json(self):
        assert parse_json_reply('```json\n{"a": 1}\n```') == {"a": 1}

    def test_fence_without_language(self):
        assert parse_json_reply("Here you go:\n```\n[1, 2]\n```") == [1, 2]

    def test_garbage_raises_value_error(self):
        with pytest.raises(ValueError):
            parse_json_reply("not json")

    def test_empty_raises_value_error(self):
        with pytest.raises(ValueError):
            parse_json_reply("")
