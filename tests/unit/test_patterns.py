"""Tests for pattern tables."""

from __future__ import annotations

import re

from beatweaver.continuity import PatternRule, PatternTable
from beatweaver.continuity.patterns import (
    MOOD_CATEGORIES,
    TRANSITION_MARKERS,
    TRAVEL_VOCABULARY,
    compile_template,
    keyword_pattern,
    mentions,
)


class TestPatternTable:
    """Tests for ordered classification."""

    def test_first_matching_rule_wins(self) -> None:
        """When several rules match, the earliest classification is returned."""
        table = PatternTable(
            (
                PatternRule(re.compile("storm"), "weather"),
                PatternRule(re.compile("storm"), "battle"),
            )
        )
        assert table.classify("the storm breaks") == "weather"

    def test_no_match_returns_none(self) -> None:
        table = PatternTable.from_patterns("travel", r"\bride\b")
        assert table.classify("they sit") is None
        assert not table.matches("they sit")

    def test_tables_concatenate_in_order(self) -> None:
        first = PatternTable.from_patterns("a", "x")
        second = PatternTable.from_patterns("b", "x")
        assert (first + second).classify("x") == "a"
        assert (second + first).classify("x") == "b"

    def test_from_keywords_preserves_category_order(self) -> None:
        """A mood naming two categories takes the earlier one."""
        assert MOOD_CATEGORIES.classify("violent") == "action"
        assert MOOD_CATEGORIES.classify("tense and sad") == "tense"
        assert MOOD_CATEGORIES.classify("joyful") == "positive"
        assert MOOD_CATEGORIES.classify("grey") is None


class TestHelpers:
    def test_keyword_pattern_whole_words(self) -> None:
        pattern = keyword_pattern(["sad"])
        assert pattern.search("a sad day")
        assert not pattern.search("a saddle")

    def test_mentions_whole_name(self) -> None:
        assert mentions("Mara Vell waits", "mara vell")
        assert not mentions("Tomasz waits", "Tomas")

    def test_compile_template_escapes_names(self) -> None:
        pattern = compile_template(r"{name} dies", name="Dr. Who (II)")
        assert pattern.search("dr. who (ii) dies")

    def test_vocabularies(self) -> None:
        assert TRAVEL_VOCABULARY.matches("They ride through the night")
        assert TRANSITION_MARKERS.matches("Meanwhile, in the tower")
        assert not TRAVEL_VOCABULARY.matches("She smiles")
