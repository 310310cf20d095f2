"""Attach library object references to beats by name matching."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence

from beatweaver.models.beat import Beat, LinkedObjects, LinkedRef
from beatweaver.models.library import Character, Item, Location, StoryEvent
from beatweaver.models.pipeline import ChapterContext


def _refs(
    entities: Iterable[Character | Location | Item | StoryEvent],
    matches: Callable[[str], bool],
) -> list[LinkedRef]:
    refs: list[LinkedRef] = []
    seen: set[str] = set()
    for entity in entities:
        key = entity.name.lower()
        if key in seen or not matches(key):
            continue
        seen.add(key)
        refs.append(LinkedRef(id=entity.id, name=entity.name))
    return refs


def link_beat(beat: Beat, context: ChapterContext) -> Beat:
    """Return a copy of ``beat`` with ``linked_objects`` rebuilt from scratch.

    A library object is linked when its lower-cased name is a substring of
    the beat text. Characters also link through cast membership, and
    locations when the beat's own location contains their name.
    """
    text = beat.text.lower()
    cast = {name.lower() for name in beat.characters}
    location = beat.location.lower()

    linked = LinkedObjects(
        characters=_refs(context.characters, lambda name: name in text or name in cast),
        locations=_refs(context.locations, lambda name: name in text or name in location),
        items=_refs(context.items, lambda name: name in text),
        events=_refs(context.events, lambda name: name in text),
    )
    return beat.model_copy(update={"linked_objects": linked})


def link_objects(beats: Sequence[Beat], context: ChapterContext) -> list[Beat]:
    """Link every beat; deterministic and idempotent, never raises on unmatched names."""
    return [link_beat(beat, context) for beat in beats]
