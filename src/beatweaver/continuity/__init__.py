"""Heuristic continuity validators, location correction, linking and state extraction."""

from beatweaver.continuity.cross_chapter import validate_cross_chapter_continuity
from beatweaver.continuity.introductions import validate_character_introductions
from beatweaver.continuity.linker import link_objects
from beatweaver.continuity.locations import correct_locations, is_valid_location
from beatweaver.continuity.patterns import PatternRule, PatternTable
from beatweaver.continuity.state import extract_chapter_state
from beatweaver.continuity.transitions import validate_scene_transitions

__all__ = [
    "PatternRule",
    "PatternTable",
    "correct_locations",
    "extract_chapter_state",
    "is_valid_location",
    "link_objects",
    "validate_character_introductions",
    "validate_cross_chapter_continuity",
    "validate_scene_transitions",
]
