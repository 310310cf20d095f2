"""Tests for character introduction checks."""

from __future__ import annotations

from typing import TYPE_CHECKING

from beatweaver.continuity import validate_character_introductions
from beatweaver.continuity.introductions import introduces, seed_introduced
from beatweaver.models import BeatType
from tests.fixtures.scripted_generation import make_beat

if TYPE_CHECKING:
    from beatweaver.models import ChapterContext


class TestSeedIntroduced:
    def test_names_in_previous_chapters(self, context: ChapterContext) -> None:
        """Names mentioned in earlier summaries count as introduced."""
        assert seed_introduced(context) == {"mara vell", "tomas"}

    def test_principals_introduced_in_chapter_one(self, context: ChapterContext) -> None:
        first = context.model_copy(update={"chapter_number": 1, "previous_chapters": []})
        assert seed_introduced(first) == {"mara vell"}

    def test_beat_cast_named_in_previous_chapter(self, context: ChapterContext) -> None:
        """A cast member outside the library counts once an earlier chapter names them."""
        previous = context.previous_chapters[0].model_copy(
            update={"summary": "Grik betrays the crew at the docks"}
        )
        with_grik = context.model_copy(update={"previous_chapters": [previous]})
        beats = [make_beat(1, characters=["Grik"], summary="He sulks by the rail")]

        assert "grik" in seed_introduced(with_grik, beats)
        assert validate_character_introductions(beats, with_grik) == ()


class TestValidateCharacterIntroductions:
    """Tests for validate_character_introductions."""

    def test_unintroduced_character_warns_once(self, context: ChapterContext) -> None:
        """A character who just frowns in beat 1 gets exactly one warning."""
        beats = [make_beat(1, characters=["Liora"], summary="Liora frowns")]

        issues = validate_character_introductions(beats, context)

        assert len(issues) == 1
        assert issues[0].severity == "warning"
        assert issues[0].type == "character_introduction_missing"
        assert issues[0].beat_number == 1
        assert issues[0].character == "Liora"

    def test_later_appearances_not_reflagged(self, context: ChapterContext) -> None:
        beats = [
            make_beat(1, characters=["Liora"], summary="Liora frowns"),
            make_beat(2, characters=["Liora"], summary="Liora sighs"),
        ]
        issues = validate_character_introductions(beats, context)
        assert [i.beat_number for i in issues] == [1]

    def test_introduction_signal_suppresses_warning(self, context: ChapterContext) -> None:
        beats = [make_beat(1, characters=["Liora"], summary="Liora enters the square")]
        assert validate_character_introductions(beats, context) == ()

    def test_named_introduction_suppresses_warning(self, context: ChapterContext) -> None:
        beats = [make_beat(1, characters=["Liora"], summary="A witch named Liora waits")]
        assert validate_character_introductions(beats, context) == ()

    def test_opening_beat_introduces(self, context: ChapterContext) -> None:
        beat = make_beat(1, type="opening", characters=["Liora"], summary="Liora frowns")
        assert beat.type == BeatType.OPENING
        assert introduces(beat, "Liora")

    def test_mention_without_presence(self, context: ChapterContext) -> None:
        """A library character named in text but not in the cast is a suggestion."""
        beats = [make_beat(1, characters=["Mara Vell"], summary="Mara Vell thinks of Tomas")]

        issues = validate_character_introductions(beats, context)

        assert [(i.severity, i.type, i.character) for i in issues] == [
            ("suggestion", "character_mention_without_presence", "Tomas")
        ]
