"""Scene transition checks for adjacent beats.

Each adjacent pair is checked for an unexplained location jump, an
unexplained change of cast, and a jarring mood swing. Pairs that are
deliberate jumps (flashbacks, dreams, cutaways...) or that open with an
explicit transition marker are skipped entirely.
"""

from __future__ import annotations

from collections.abc import Sequence

from beatweaver.continuity.locations import tokenize
from beatweaver.continuity.patterns import (
    ABRUPT_SHIFT_VOCABULARY,
    ARRIVAL_VOCABULARY,
    CAST_TRANSFER_VOCABULARY,
    JARRING_MOOD_PAIRS,
    MOOD_CATEGORIES,
    TRANSITION_MARKERS,
    TRAVEL_VOCABULARY,
    mentions,
)
from beatweaver.models.beat import INTENTIONAL_JUMP_TYPES, Beat, BeatType
from beatweaver.models.issues import Issue
from beatweaver.models.library import Location

SOURCE = "scene_transition"

# Beat types that may legitimately change mood without a bridge.
MOOD_BRIDGE_TYPES = frozenset(
    {BeatType.TRANSITION, BeatType.RESOLUTION, BeatType.CLIMAX, BeatType.REVELATION}
)

# Tokens too generic to relate two locations on their own.
_GENERIC_LOCATION_TOKENS = frozenset(
    {"the", "old", "new", "great", "little", "upper", "lower", "north", "south", "east",
     "west", "room", "hall", "house", "street", "road"}
)

MIN_SIGNIFICANT_TOKEN_LENGTH = 4


def classify_mood(mood: str) -> str:
    """Map a free-text mood to positive, negative, tense, calm, action, or neutral."""
    return MOOD_CATEGORIES.classify(mood) or "neutral"


def _significant_tokens(name: str) -> set[str]:
    return {
        t
        for t in tokenize(name)
        if len(t) >= MIN_SIGNIFICANT_TOKEN_LENGTH and t not in _GENERIC_LOCATION_TOKENS
    }


def _parent_of(name: str, locations: Sequence[Location]) -> str | None:
    lowered = name.strip().lower()
    for location in locations:
        if location.name.strip().lower() == lowered and location.parent:
            return location.parent.strip().lower()
    return None


def locations_related(first: str, second: str, locations: Sequence[Location] = ()) -> bool:
    """Decide whether two locations belong to the same place.

    Related when equal, when one contains the other, when they share a
    significant token, or when the library records a shared parent region
    (or one is the other's parent).
    """
    a = first.strip().lower()
    b = second.strip().lower()
    if not a or not b:
        return True
    if a == b or a in b or b in a:
        return True
    if _significant_tokens(a) & _significant_tokens(b):
        return True

    parent_a = _parent_of(a, locations)
    parent_b = _parent_of(b, locations)
    if parent_a and (parent_a == b or parent_a == parent_b):
        return True
    return bool(parent_b and parent_b == a)


def is_intentional_jump(current: Beat, following: Beat) -> bool:
    """True when the pair should not be checked at all."""
    if current.type in INTENTIONAL_JUMP_TYPES or following.type in INTENTIONAL_JUMP_TYPES:
        return True
    return TRANSITION_MARKERS.matches(following.summary)


def check_location_transition(
    current: Beat,
    following: Beat,
    locations: Sequence[Location] = (),
) -> Issue | None:
    """Flag an unrelated location change with no travel in either summary."""
    if locations_related(current.location, following.location, locations):
        return None
    if TRAVEL_VOCABULARY.matches(current.summary) or TRAVEL_VOCABULARY.matches(following.summary):
        return None
    return Issue(
        beat_number=following.beat_number,
        severity="warning",
        type="location_jump",
        description=(
            f"Scene jumps from '{current.location}' to '{following.location}' "
            "with no travel or transition"
        ),
        fix_suggestion=(
            "Show the characters travelling, add a transition marker, or keep the scene "
            "in the same place"
        ),
        source=SOURCE,
        location=following.location,
    )


def check_character_transition(
    current: Beat,
    following: Beat,
    locations: Sequence[Location] = (),
) -> Issue | None:
    """Flag a complete cast swap, or several unexplained arrivals."""
    current_cast = {c.lower(): c for c in current.characters}
    following_cast = {c.lower(): c for c in following.characters}
    arrivals = [following_cast[k] for k in following_cast if k not in current_cast]
    departures = [current_cast[k] for k in current_cast if k not in following_cast]

    arrival_language = ARRIVAL_VOCABULARY.matches(following.text)
    transfer_language = CAST_TRANSFER_VOCABULARY.matches(
        current.text
    ) or CAST_TRANSFER_VOCABULARY.matches(following.text)

    unexplained_arrivals = [
        name for name in arrivals if not (arrival_language and mentions(following.text, name))
    ]
    unexplained_departures = [
        name
        for name in departures
        if not (
            transfer_language and (mentions(current.text, name) or mentions(following.text, name))
        )
    ]
    if len(unexplained_arrivals) + len(unexplained_departures) <= 1:
        return None

    complete_swap = (
        bool(current_cast)
        and bool(following_cast)
        and not (current_cast.keys() & following_cast.keys())
    )
    if complete_swap and not transfer_language:
        same_place = locations_related(current.location, following.location, locations)
        where = "at the same location" if same_place else "along with the location"
        return Issue(
            beat_number=following.beat_number,
            severity="warning",
            type="character_presence_jump",
            description=(
                f"The entire cast changes {where}: "
                f"{', '.join(departures)} out, {', '.join(arrivals)} in"
            ),
            fix_suggestion="Show who leaves and who arrives, or mark a scene break",
            source=SOURCE,
        )

    if len(unexplained_arrivals) >= 2 and not arrival_language:
        return Issue(
            beat_number=following.beat_number,
            severity="suggestion",
            type="character_presence_jump",
            description=(
                f"{', '.join(unexplained_arrivals)} appear in beat {following.beat_number} "
                "without arriving"
            ),
            fix_suggestion="Describe their arrival or establish they were already present",
            source=SOURCE,
        )
    return None


def check_mood_transition(current: Beat, following: Beat) -> Issue | None:
    """Flag a jarring mood swing that nothing in the next beat bridges."""
    before = classify_mood(current.mood)
    after = classify_mood(following.mood)
    if before == after or frozenset({before, after}) not in JARRING_MOOD_PAIRS:
        return None
    if following.type in MOOD_BRIDGE_TYPES or ABRUPT_SHIFT_VOCABULARY.matches(following.text):
        return None
    return Issue(
        beat_number=following.beat_number,
        severity="suggestion",
        type="mood_jump",
        description=(
            f"Mood shifts from {before} ('{current.mood}') to {after} "
            f"('{following.mood}') without a bridge"
        ),
        fix_suggestion="Add a transitional moment or make the shift deliberate and abrupt",
        source=SOURCE,
    )


def validate_scene_transitions(
    beats: Sequence[Beat],
    locations: Sequence[Location] = (),
) -> tuple[Issue, ...]:
    """Run location, cast, and mood checks over every adjacent pair.

    Args:
        beats: Beats to check (ordered by ``beat_number`` here).
        locations: Library locations, for parent-region relatedness.

    Returns:
        Issues in pair order; per pair: location, then cast, then mood.
    """
    ordered = sorted(beats, key=lambda b: b.beat_number)
    issues: list[Issue] = []
    for current, following in zip(ordered, ordered[1:], strict=False):
        if is_intentional_jump(current, following):
            continue
        for issue in (
            check_location_transition(current, following, locations),
            check_character_transition(current, following, locations),
            check_mood_transition(current, following),
        ):
            if issue is not None:
                issues.append(issue)
    return tuple(issues)
