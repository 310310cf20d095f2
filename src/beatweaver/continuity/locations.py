"""Location legality: keep every beat inside the approved location set.

A beat location is valid when it equals, contains, or is contained by an
approved location name (case-insensitive). Invalid locations are
rewritten to the approved location sharing the most tokens, falling back
to the first approved location. Correction is idempotent.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from beatweaver.models.beat import Beat
from beatweaver.models.library import Location
from beatweaver.observability.logging import get_logger

log = get_logger(__name__)

# Tokens shorter than this never count toward a match score.
MIN_TOKEN_LENGTH = 3

_TOKEN_SPLIT = re.compile(r"[^\w']+")


def tokenize(name: str) -> list[str]:
    """Lower-cased word tokens of a location name."""
    return [t for t in _TOKEN_SPLIT.split(name.lower()) if t]


def is_valid_location(location: str, approved_names: Sequence[str]) -> bool:
    """Check a location against approved names by equality or containment."""
    lowered = location.strip().lower()
    if not lowered:
        return False
    for name in approved_names:
        candidate = name.strip().lower()
        if not candidate:
            continue
        if lowered == candidate or candidate in lowered or lowered in candidate:
            return True
    return False


def match_score(location: str, candidate: str) -> int:
    """Count token pairs (both at least MIN_TOKEN_LENGTH long) that contain one another."""
    score = 0
    candidate_tokens = [t for t in tokenize(candidate) if len(t) >= MIN_TOKEN_LENGTH]
    for token in tokenize(location):
        if len(token) < MIN_TOKEN_LENGTH:
            continue
        for other in candidate_tokens:
            if other in token or token in other:
                score += 1
    return score


def find_best_location(location: str, approved: Sequence[Location]) -> str:
    """Pick the approved location closest to ``location``.

    Highest token score wins; ties keep the earlier location. With no
    positive score the first approved location is returned.

    Args:
        location: The invalid location string.
        approved: Non-empty list of approved locations.

    Returns:
        Name of the chosen approved location.
    """
    best_name: str | None = None
    best_score = 0
    for candidate in approved:
        score = match_score(location, candidate.name)
        if score > best_score:
            best_score = score
            best_name = candidate.name
    return best_name or approved[0].name


def correct_locations(beats: Sequence[Beat], approved: Sequence[Location]) -> list[Beat]:
    """Rewrite beat locations that are not in the approved set.

    Corrected beats carry ``location_corrected=True`` and keep the string
    they had in ``original_location``. Beats without a location, and all
    beats when no locations are approved, pass through unchanged.

    Args:
        beats: Draft or refined beats.
        approved: Approved library locations.

    Returns:
        New list of beats with valid locations.
    """
    if not beats or not approved:
        return list(beats)

    approved_names = [loc.name for loc in approved]
    corrected: list[Beat] = []
    for beat in beats:
        if not beat.location or is_valid_location(beat.location, approved_names):
            corrected.append(beat)
            continue

        replacement = find_best_location(beat.location, approved)
        log.info(
            "location_corrected",
            beat=beat.beat_number,
            original=beat.location,
            corrected=replacement,
        )
        corrected.append(
            beat.model_copy(
                update={
                    "location": replacement,
                    "location_corrected": True,
                    "original_location": beat.original_location or beat.location,
                }
            )
        )
    return corrected
