"""In-memory chapter store."""

from __future__ import annotations

from beatweaver.models import ChapterFinalState, StoryEvent


class InMemoryChapterStore:
    """Dict-backed PersistenceService, for tests and one-off runs.

    States are stored as copies so callers cannot mutate stored values.
    """

    def __init__(
        self,
        linked_events: dict[int, list[StoryEvent]] | None = None,
        states: dict[int, ChapterFinalState] | None = None,
    ) -> None:
        self._events: dict[int, list[StoryEvent]] = {
            number: list(events) for number, events in (linked_events or {}).items()
        }
        self._states: dict[int, ChapterFinalState] = {
            number: state.model_copy(deep=True) for number, state in (states or {}).items()
        }

    def set_linked_events(self, chapter_number: int, events: list[StoryEvent]) -> None:
        self._events[chapter_number] = list(events)

    async def load_linked_events(self, chapter_number: int) -> list[StoryEvent]:
        return list(self._events.get(chapter_number, []))

    async def load_chapter_final_state(self, chapter_number: int) -> ChapterFinalState | None:
        state = self._states.get(chapter_number)
        return state.model_copy(deep=True) if state is not None else None

    async def store_chapter_final_state(
        self,
        chapter_number: int,
        state: ChapterFinalState,
    ) -> None:
        self._states[chapter_number] = state.model_copy(deep=True)
