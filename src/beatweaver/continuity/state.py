"""End-of-chapter state extraction.

Scans the finished beats for deaths, item losses, destructions, recoveries
and acquisitions using the templates in ``patterns``, and snapshots where
the final beat leaves its cast. Facts from the previous chapter's state
are carried forward so the next chapter validates against the whole story
so far, not only the last chapter.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from beatweaver.continuity.patterns import (
    ACQUISITION_TEMPLATE,
    CHARACTER_STATE_TEMPLATES,
    ITEM_STATE_TEMPLATES,
    compile_template,
)
from beatweaver.models.beat import Beat, BeatType
from beatweaver.models.pipeline import ChapterContext
from beatweaver.models.state import ChapterFinalState
from beatweaver.observability.logging import get_logger

log = get_logger(__name__)

# Beats that do not happen in the story's present.
NON_LITERAL_BEAT_TYPES = frozenset(
    {
        BeatType.FLASHBACK,
        BeatType.FLASH_FORWARD,
        BeatType.MEMORY,
        BeatType.DREAM,
        BeatType.VISION,
    }
)


def _unique(names: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for name in names:
        cleaned = name.strip()
        if cleaned and cleaned.lower() not in seen:
            seen.add(cleaned.lower())
            result.append(cleaned)
    return result


def name_variants(roster: Sequence[str]) -> dict[str, list[str]]:
    """Map each roster name to the spellings that resolve to it.

    Besides the full name, a first name resolves to its owner when no
    other roster entry shares it ("Ana" for "Ana Cole").
    """
    first_names: dict[str, int] = {}
    for name in roster:
        parts = name.split()
        if len(parts) > 1:
            first_names[parts[0].lower()] = first_names.get(parts[0].lower(), 0) + 1
    full_names = {name.lower() for name in roster}

    variants: dict[str, list[str]] = {}
    for name in roster:
        spellings = [name]
        parts = name.split()
        first = parts[0] if len(parts) > 1 else ""
        if first and first_names[first.lower()] == 1 and first.lower() not in full_names:
            spellings.append(first)
        variants[name] = spellings
    return variants


def _compiled(
    templates: Sequence[tuple[str, str]],
    spellings: Sequence[str],
) -> list[tuple[str, re.Pattern[str]]]:
    return [
        (classification, compile_template(template, name=spelling))
        for classification, template in templates
        for spelling in spellings
    ]


def _classify(text: str, rules: Sequence[tuple[str, re.Pattern[str]]]) -> str | None:
    for classification, pattern in rules:
        if pattern.search(text):
            return classification
    return None


def _literal_beats(beats: Sequence[Beat]) -> list[Beat]:
    ordered = sorted(beats, key=lambda b: b.beat_number)
    return [beat for beat in ordered if beat.type not in NON_LITERAL_BEAT_TYPES]


def find_deaths(beats: Sequence[Beat], characters: Sequence[str]) -> list[str]:
    """Roster characters whose death is stated in a literal beat."""
    text = " ".join(beat.text for beat in _literal_beats(beats))
    dead: list[str] = []
    for name, spellings in name_variants(characters).items():
        if _classify(text, _compiled(CHARACTER_STATE_TEMPLATES, spellings)) == "death":
            dead.append(name)
    return dead


def item_events(beats: Sequence[Beat], items: Sequence[str]) -> dict[str, str]:
    """Last destroyed/lost/recovered event per item, in beat order.

    Destruction is final: once destroyed, later beats cannot change it.
    """
    rules = {
        name: _compiled(ITEM_STATE_TEMPLATES, spellings)
        for name, spellings in name_variants(items).items()
    }
    status: dict[str, str] = {}
    for beat in _literal_beats(beats):
        for name, item_rules in rules.items():
            if status.get(name) == "destroyed":
                continue
            classification = _classify(beat.text, item_rules)
            if classification:
                status[name] = classification
    return status


def find_acquisitions(
    beats: Sequence[Beat],
    characters: Sequence[str],
    items: Sequence[str],
) -> list[tuple[str, str]]:
    """``(owner, item)`` pairs for each acquisition, in beat order."""
    owners = name_variants(characters)
    item_spellings = name_variants(items)
    patterns = [
        (owner, item, compile_template(ACQUISITION_TEMPLATE, owner=o, item=i))
        for owner, o_spellings in owners.items()
        for item, i_spellings in item_spellings.items()
        for o in o_spellings
        for i in i_spellings
    ]
    acquisitions: list[tuple[str, str]] = []
    for beat in _literal_beats(beats):
        for owner, item, pattern in patterns:
            if pattern.search(beat.text) and (owner, item) not in acquisitions:
                acquisitions.append((owner, item))
    return acquisitions


def _roster(
    context: ChapterContext,
    beats: Sequence[Beat],
    previous: ChapterFinalState | None,
) -> tuple[list[str], list[str]]:
    characters = [c.name for c in context.characters]
    characters += [name for beat in beats for name in beat.characters]
    items = [i.name for i in context.items]
    if previous is not None:
        items += previous.unavailable_items
        items += [item for owned in previous.character_inventory.values() for item in owned]
    return _unique(characters), _unique(items)


def _seed_inventory(
    context: ChapterContext,
    previous: ChapterFinalState | None,
) -> dict[str, list[str]]:
    if previous is not None:
        return {owner: list(items) for owner, items in previous.character_inventory.items()}
    inventory: dict[str, list[str]] = {}
    for item in context.items:
        if item.owner:
            inventory.setdefault(item.owner, []).append(item.name)
    return inventory


def extract_chapter_state(
    beats: Sequence[Beat],
    context: ChapterContext,
    chapter_number: int,
    previous_state: ChapterFinalState | None = None,
) -> ChapterFinalState:
    """Derive the chapter's final state from its finished beats.

    Args:
        beats: Final (refined, linked) beats.
        context: Chapter context, for the character and item rosters.
        chapter_number: Chapter the state belongs to.
        previous_state: Prior chapter's state, carried forward when given.

    Returns:
        The state for ``chapter_number``. Unmatched names are omitted;
        this function does not raise on odd beat text.
    """
    characters, items = _roster(context, beats, previous_state)

    previously_dead = previous_state.dead_characters if previous_state else []
    dead = _unique([*previously_dead, *find_deaths(beats, characters)])
    destroyed = list(previous_state.destroyed_items) if previous_state else []
    lost = list(previous_state.lost_items) if previous_state else []

    for item, status in item_events(beats, items).items():
        lowered = item.lower()
        lost = [name for name in lost if name.lower() != lowered]
        if status == "destroyed":
            destroyed.append(item)
        elif status == "lost":
            lost.append(item)
    destroyed = _unique(destroyed)
    lost = [name for name in _unique(lost) if name.lower() not in {d.lower() for d in destroyed}]

    inventory = _seed_inventory(context, previous_state)
    for owner, item in find_acquisitions(beats, characters, items):
        for held in inventory.values():
            if item in held:
                held.remove(item)
        inventory.setdefault(owner, []).append(item)
        lost = [name for name in lost if name.lower() != item.lower()]
    gone = {name.lower() for name in [*lost, *destroyed]}
    inventory = {
        owner: [item for item in _unique(held) if item.lower() not in gone]
        for owner, held in inventory.items()
    }
    inventory = {owner: held for owner, held in inventory.items() if held}

    literal = _literal_beats(beats)
    final_beat = literal[-1] if literal else None
    locations = dict(previous_state.character_locations) if previous_state else {}
    final_location = previous_state.final_location if previous_state else None
    if final_beat is not None and final_beat.location:
        final_location = final_beat.location
        for name in final_beat.characters:
            locations[name] = final_beat.location
    dead_keys = {name.lower() for name in dead}
    locations = {name: loc for name, loc in locations.items() if name.lower() not in dead_keys}

    state = ChapterFinalState(
        chapter_number=chapter_number,
        dead_characters=dead,
        character_locations=locations,
        lost_items=lost,
        destroyed_items=destroyed,
        character_inventory=inventory,
        final_location=final_location,
    )
    log.debug(
        "chapter_state_extracted",
        chapter=chapter_number,
        dead=len(state.dead_characters),
        lost=len(state.lost_items),
        destroyed=len(state.destroyed_items),
        final_location=state.final_location,
    )
    return state
