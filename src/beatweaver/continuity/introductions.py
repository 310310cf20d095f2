"""Character introduction checks.

Walks beats in order and flags characters who show up without ever having
been introduced, either in an earlier chapter or by the beat itself.
"""

from __future__ import annotations

from collections.abc import Sequence

from beatweaver.continuity.patterns import (
    INTRODUCTION_SIGNALS,
    NAMED_INTRODUCTION_TEMPLATES,
    compile_template,
    mentions,
)
from beatweaver.models.beat import Beat, BeatType
from beatweaver.models.issues import Issue
from beatweaver.models.pipeline import ChapterContext

SOURCE = "character_introduction"


def seed_introduced(context: ChapterContext, beats: Sequence[Beat] = ()) -> set[str]:
    """Characters already known to the reader before this chapter.

    Any library, outline-cast or beat-cast name found in a prior chapter's
    summary or key events counts; in chapter 1 principal characters
    (protagonist, main, narrator) are introduced by default.
    """
    introduced: set[str] = set()
    prior_text = " ".join(
        " ".join([chapter.summary, *chapter.key_events]) for chapter in context.previous_chapters
    )
    candidate_names = {c.name for c in context.characters}
    candidate_names.update(context.chapter.characters_present)
    candidate_names.update(name for beat in beats for name in beat.characters)
    for name in candidate_names:
        if prior_text and mentions(prior_text, name):
            introduced.add(name.lower())

    if context.chapter_number == 1:
        introduced.update(c.name.lower() for c in context.characters if c.is_principal)
    return introduced


def introduces(beat: Beat, name: str) -> bool:
    """True when ``beat`` can serve as ``name``'s introduction."""
    if beat.type == BeatType.OPENING:
        return True
    text = beat.text
    if INTRODUCTION_SIGNALS.matches(text):
        return True
    return any(
        compile_template(template, name=name).search(text)
        for template in NAMED_INTRODUCTION_TEMPLATES
    )


def validate_character_introductions(
    beats: Sequence[Beat],
    context: ChapterContext,
) -> tuple[Issue, ...]:
    """Flag uncredited first appearances and mentions without presence.

    Args:
        beats: Beats to check.
        context: Chapter context (prior chapters and library characters).

    Returns:
        Warnings of type ``character_introduction_missing`` and suggestions
        of type ``character_mention_without_presence``.
    """
    introduced = seed_introduced(context, beats)
    issues: list[Issue] = []

    for beat in sorted(beats, key=lambda b: b.beat_number):
        for name in beat.characters:
            key = name.lower()
            if key in introduced:
                continue
            introduced.add(key)
            if introduces(beat, name):
                continue
            issues.append(
                Issue(
                    beat_number=beat.beat_number,
                    severity="warning",
                    type="character_introduction_missing",
                    description=(
                        f"{name} appears in beat {beat.beat_number} without being introduced"
                    ),
                    fix_suggestion=(
                        f"Introduce {name} on arrival, at a first meeting, or with a line "
                        "establishing who they are"
                    ),
                    source=SOURCE,
                    character=name,
                )
            )

        text = beat.text
        for character in context.characters:
            if beat.has_character(character.name) or not mentions(text, character.name):
                continue
            issues.append(
                Issue(
                    beat_number=beat.beat_number,
                    severity="suggestion",
                    type="character_mention_without_presence",
                    description=(
                        f"{character.name} is mentioned in beat {beat.beat_number} "
                        "but not listed as present"
                    ),
                    fix_suggestion=(
                        f"Add {character.name} to the beat's characters, or make clear "
                        "they are only being talked about"
                    ),
                    source=SOURCE,
                    character=character.name,
                )
            )

    return tuple(issues)
