"""Tests for cross-chapter continuity checks."""

from __future__ import annotations

from typing import TYPE_CHECKING

from beatweaver.continuity import validate_cross_chapter_continuity
from beatweaver.models import ChapterFinalState
from tests.fixtures.scripted_generation import make_beat

if TYPE_CHECKING:
    from beatweaver.models import ChapterContext


def _state(**fields: object) -> ChapterFinalState:
    return ChapterFinalState.model_validate({"chapter_number": 1, **fields})


class TestValidateCrossChapterContinuity:
    """Tests for validate_cross_chapter_continuity."""

    def test_first_chapter_is_not_checked(self, context: ChapterContext) -> None:
        state = _state(dead_characters=["Tomas"])
        beats = [make_beat(1, characters=["Tomas"])]
        assert validate_cross_chapter_continuity(state, beats, context, 1) == ()

    def test_missing_state_is_not_checked(self, context: ChapterContext) -> None:
        beats = [make_beat(1)]
        assert validate_cross_chapter_continuity(None, beats, context, 2) == ()

    def test_dead_character_present_is_critical(self, context: ChapterContext) -> None:
        """A dead character listed in a literal beat is a resurrection."""
        state = _state(dead_characters=["Tomas"])
        beats = [
            make_beat(1, characters=["Mara Vell"], summary="Mara Vell mourns alone"),
            make_beat(2, characters=["Mara Vell", "Tomas"], summary="Tomas laughs"),
            make_beat(3, characters=["Tomas"], summary="Tomas sings"),
        ]

        issues = validate_cross_chapter_continuity(state, beats, context, 2)

        assert len(issues) == 1
        assert issues[0].severity == "critical"
        assert issues[0].type == "character_resurrection_contradiction"
        assert issues[0].beat_number == 2
        assert issues[0].source == "cross_chapter"

    def test_flashback_and_memory_are_exempt(self, context: ChapterContext) -> None:
        state = _state(dead_characters=["Tomas"])
        beats = [
            make_beat(1, type="flashback", characters=["Tomas"], summary="Tomas laughs"),
            make_beat(2, characters=["Mara Vell"], summary="Mara Vell remembers Tomas"),
        ]
        assert validate_cross_chapter_continuity(state, beats, context, 2) == ()

    def test_lost_item_used_is_critical(self, context: ChapterContext) -> None:
        """Raising a lost key contradicts the previous chapter."""
        state = _state(lost_items=[{"name": "Silver Key"}])
        beats = [
            make_beat(
                1,
                characters=["Mara Vell"],
                summary="She raises the Silver Key and unlocks the gate",
            )
        ]

        issues = validate_cross_chapter_continuity(state, beats, context, 2)

        assert len(issues) == 1
        assert issues[0].severity == "critical"
        assert issues[0].type == "item_availability_contradiction"
        assert issues[0].item == "Silver Key"
        assert "lost" in issues[0].description

    def test_searching_for_lost_item_is_fine(self, context: ChapterContext) -> None:
        state = _state(destroyed_items=["Lantern"])
        beats = [make_beat(1, summary="They search the ashes for the Lantern")]
        assert validate_cross_chapter_continuity(state, beats, context, 2) == ()

    def test_character_opening_elsewhere_warns(self, context: ChapterContext) -> None:
        state = _state(character_locations={"Mara Vell": "Old Mill"})
        beats = [
            make_beat(1, location="Harbor Docks", characters=["Mara Vell"], summary="Mara counts"),
        ]

        issues = validate_cross_chapter_continuity(state, beats, context, 2)

        assert [(i.severity, i.type, i.character) for i in issues] == [
            ("warning", "location_teleportation", "Mara Vell")
        ]
        assert issues[0].beat_number == 1

    def test_travel_in_opening_beats_explains_move(self, context: ChapterContext) -> None:
        state = _state(character_locations={"Mara Vell": "Old Mill"})
        beats = [
            make_beat(1, location="Harbor Docks", characters=["Mara Vell"], summary="Mara waits"),
            make_beat(2, location="Harbor Docks", summary="After a long ride she rests"),
        ]
        assert validate_cross_chapter_continuity(state, beats, context, 2) == ()

    def test_item_used_without_owner_is_suggestion(self, context: ChapterContext) -> None:
        state = _state(character_inventory={"Mara Vell": ["Silver Key"]})
        beats = [
            make_beat(1, characters=["Tomas"], summary="Tomas opens the crypt with the Silver Key")
        ]

        issues = validate_cross_chapter_continuity(state, beats, context, 2)

        assert [(i.severity, i.type) for i in issues] == [
            ("suggestion", "inventory_inconsistency")
        ]

    def test_handover_explains_item_use(self, context: ChapterContext) -> None:
        state = _state(character_inventory={"Mara Vell": ["Silver Key"]})
        beats = [
            make_beat(
                1,
                characters=["Tomas"],
                summary="Tomas, who was given the key, opens the crypt with the Silver Key",
            )
        ]
        assert validate_cross_chapter_continuity(state, beats, context, 2) == ()

    def test_issue_order_is_fixed(self, context: ChapterContext) -> None:
        """Resurrection issues come before item issues."""
        state = _state(dead_characters=["Tomas"], lost_items=["Silver Key"])
        beats = [
            make_beat(1, characters=["Mara Vell"], summary="Mara Vell holds the Silver Key"),
            make_beat(2, characters=["Tomas"], summary="Tomas waves"),
        ]

        issues = validate_cross_chapter_continuity(state, beats, context, 2)

        assert [i.type for i in issues] == [
            "character_resurrection_contradiction",
            "item_availability_contradiction",
        ]
