"""Cross-chapter continuity checks.

Compares a chapter's draft beats against the final state recorded for the
previous chapter: dead characters must stay dead, lost or destroyed items
stay unavailable, characters start where they were last seen, and items
stay with their owners unless handed over. All checks are keyword and
pattern based; severities are fixed per check.
"""

from __future__ import annotations

from collections.abc import Sequence

from beatweaver.continuity.patterns import (
    ITEM_ABSENCE_VOCABULARY,
    ITEM_TRANSFER_VOCABULARY,
    ITEM_USE_TEMPLATES,
    RESURRECTION_EXEMPTIONS,
    TELEPORT_BRIDGE_VOCABULARY,
    compile_template,
    mentions,
)
from beatweaver.continuity.transitions import locations_related
from beatweaver.models.beat import Beat, BeatType
from beatweaver.models.issues import Issue
from beatweaver.models.library import Location
from beatweaver.models.pipeline import ChapterContext
from beatweaver.models.state import ChapterFinalState
from beatweaver.observability.logging import get_logger

log = get_logger(__name__)

SOURCE = "cross_chapter"

# Beat types in which a dead character may legitimately appear.
NON_LITERAL_BEAT_TYPES = frozenset(
    {BeatType.FLASHBACK, BeatType.MEMORY, BeatType.VISION, BeatType.DREAM}
)

# How many opening beats may explain a change of location.
TELEPORT_WINDOW = 3


def _uses_item(text: str, item: str) -> bool:
    return any(compile_template(t, item=item).search(text) for t in ITEM_USE_TEMPLATES)


def check_resurrections(
    state: ChapterFinalState,
    beats: Sequence[Beat],
) -> list[Issue]:
    """Dead characters present or named without non-literal framing."""
    issues: list[Issue] = []
    for name in state.dead_characters:
        for beat in beats:
            if not (beat.has_character(name) or mentions(beat.text, name)):
                continue
            if beat.type in NON_LITERAL_BEAT_TYPES or RESURRECTION_EXEMPTIONS.matches(beat.text):
                continue
            issues.append(
                Issue(
                    beat_number=beat.beat_number,
                    severity="critical",
                    type="character_resurrection_contradiction",
                    description=(
                        f"{name} died in chapter {state.chapter_number} but appears "
                        f"in beat {beat.beat_number}"
                    ),
                    fix_suggestion=(
                        f"Remove {name} from the scene, or frame the appearance as a "
                        "flashback, memory, or vision"
                    ),
                    source=SOURCE,
                    character=name,
                )
            )
            break
    return issues


def check_item_availability(
    state: ChapterFinalState,
    beats: Sequence[Beat],
) -> list[Issue]:
    """Lost or destroyed items that are used, or mentioned as if still at hand."""
    issues: list[Issue] = []
    destroyed = {name.lower() for name in state.destroyed_items}
    for item in state.unavailable_items:
        status = "destroyed" if item.lower() in destroyed else "lost"
        for beat in beats:
            text = beat.text
            if not mentions(text, item):
                continue
            if _uses_item(text, item):
                description = (
                    f"{item} was {status} in chapter {state.chapter_number} "
                    f"but is used in beat {beat.beat_number}"
                )
            elif not ITEM_ABSENCE_VOCABULARY.matches(text):
                description = (
                    f"{item} was {status} in chapter {state.chapter_number} "
                    f"but is present in beat {beat.beat_number}"
                )
            else:
                continue
            issues.append(
                Issue(
                    beat_number=beat.beat_number,
                    severity="critical",
                    type="item_availability_contradiction",
                    description=description,
                    fix_suggestion=(
                        f"Acknowledge that the {item} is {status}, or show it being "
                        "recovered before it is used"
                    ),
                    source=SOURCE,
                    item=item,
                )
            )
            break
    return issues


def check_teleportation(
    state: ChapterFinalState,
    beats: Sequence[Beat],
    locations: Sequence[Location] = (),
) -> list[Issue]:
    """Characters opening the chapter far from where they were last recorded."""
    if not beats or not state.character_locations:
        return []

    first = beats[0]
    if not first.location:
        return []
    window_text = " ".join(beat.text for beat in beats[:TELEPORT_WINDOW])
    if TELEPORT_BRIDGE_VOCABULARY.matches(window_text):
        return []

    last_seen = {name.lower(): loc for name, loc in state.character_locations.items()}
    dead = {name.lower() for name in state.dead_characters}
    issues: list[Issue] = []
    for name in first.characters:
        previous = last_seen.get(name.lower())
        if not previous or name.lower() in dead:
            continue
        if locations_related(previous, first.location, locations):
            continue
        issues.append(
            Issue(
                beat_number=1,
                severity="warning",
                type="location_teleportation",
                description=(
                    f"{name} ended chapter {state.chapter_number} at '{previous}' but opens "
                    f"this chapter at '{first.location}' with no travel"
                ),
                fix_suggestion=(
                    f"Open with {name} travelling, or note the time skip that moved them"
                ),
                source=SOURCE,
                character=name,
                location=first.location,
            )
        )
    return issues


def check_inventory(
    state: ChapterFinalState,
    beats: Sequence[Beat],
) -> list[Issue]:
    """Owned items used in beats where the owner is absent and nothing was handed over."""
    unavailable = {name.lower() for name in state.unavailable_items}
    issues: list[Issue] = []
    for owner, items in state.character_inventory.items():
        for item in items:
            if item.lower() in unavailable:
                continue
            for beat in beats:
                if beat.has_character(owner) or not _uses_item(beat.text, item):
                    continue
                if ITEM_TRANSFER_VOCABULARY.matches(beat.text):
                    continue
                issues.append(
                    Issue(
                        beat_number=beat.beat_number,
                        severity="suggestion",
                        type="inventory_inconsistency",
                        description=(
                            f"{item} belongs to {owner} but is used in beat "
                            f"{beat.beat_number} without them"
                        ),
                        fix_suggestion=(
                            f"Show how the {item} left {owner}'s hands, or include {owner}"
                        ),
                        source=SOURCE,
                        character=owner,
                        item=item,
                    )
                )
                break
    return issues


def validate_cross_chapter_continuity(
    previous_state: ChapterFinalState | None,
    beats: Sequence[Beat],
    context: ChapterContext,
    chapter_number: int,
) -> tuple[Issue, ...]:
    """Check draft beats against the previous chapter's final state.

    Args:
        previous_state: State extracted from chapter ``chapter_number - 1``.
        beats: Draft (location-corrected) beats.
        context: Chapter context, for library locations.
        chapter_number: Current chapter number.

    Returns:
        Issues ordered resurrection, item availability, teleportation,
        inventory. Empty for chapter 1 or when no prior state exists.
    """
    if chapter_number <= 1 or previous_state is None:
        return ()

    ordered = sorted(beats, key=lambda b: b.beat_number)
    issues = [
        *check_resurrections(previous_state, ordered),
        *check_item_availability(previous_state, ordered),
        *check_teleportation(previous_state, ordered, context.locations),
        *check_inventory(previous_state, ordered),
    ]
    log.debug(
        "cross_chapter_checked",
        chapter=chapter_number,
        previous=previous_state.chapter_number,
        issues=len(issues),
    )
    return tuple(issues)
