"""Chapter beat pipeline orchestration.

Runs the stages strictly in order for one chapter:

    context -> timeline -> draft -> location correction
    -> continuity (introductions, transitions, generative check)
    -> cross-chapter check -> refinement (when critical issues exist)
    -> object linking -> state extraction

The pipeline object holds only injected collaborators and configuration,
so separate chapters may run concurrently.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from beatweaver.continuity import (
    correct_locations,
    extract_chapter_state,
    link_objects,
    validate_cross_chapter_continuity,
)
from beatweaver.models import BeatPipelineRequest, BeatPipelineResult, ChapterFinalState
from beatweaver.observability.logging import chapter_log_context, get_logger
from beatweaver.pipeline.config import PipelineConfig
from beatweaver.pipeline.stages import (
    assemble_context,
    categorize_timeline,
    draft_beats,
    merge_cross_chapter,
    reattribute_issues,
    refine_beats,
    should_refine,
    validate_continuity,
    with_count_summary,
)
from beatweaver.prompts import PromptCompiler

if TYPE_CHECKING:
    from beatweaver.models import (
        ChapterOutline,
        ContentPreferences,
        LibraryData,
        Outline,
        Synopsis,
    )
    from beatweaver.persistence import PersistenceService
    from beatweaver.providers import GenerationService

log = get_logger(__name__)


class BeatPipeline:
    """Generate and validate one chapter's beats.

    Attributes:
        config: Pipeline configuration for every run.
    """

    def __init__(
        self,
        generation: GenerationService,
        persistence: PersistenceService | None = None,
        config: PipelineConfig | None = None,
        compiler: PromptCompiler | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            generation: Generation service for the four generative stages.
            persistence: Source of linked events and chapter states, if any.
            config: Pipeline configuration; defaults when omitted.
            compiler: Prompt compiler; the bundled templates when omitted.
        """
        self._generation = generation
        self._persistence = persistence
        self.config = config or PipelineConfig()
        self._compiler = compiler or PromptCompiler()

    async def run(self, request: BeatPipelineRequest) -> BeatPipelineResult:
        """Run the full pipeline for one chapter.

        Args:
            request: Chapter, outline, library, preferences and optional
                previous chapter state.

        Returns:
            Final beats, timeline, validation and the chapter's final state.

        Raises:
            BeatDraftError: If the drafted beats are unusable.
            ProviderError: If the drafting call itself fails.
        """
        with chapter_log_context(request.chapter_number):
            return await self._run(request)

    async def _run(self, request: BeatPipelineRequest) -> BeatPipelineResult:
        start_time = time.perf_counter()
        chapter = request.chapter_number
        log.info("pipeline_started", chapter=chapter, title=request.chapter.title)

        context = await assemble_context(request, self._persistence)
        timeline_result = await categorize_timeline(
            context, self._generation, self._compiler, self.config
        )
        timeline = timeline_result.value

        drafted = await draft_beats(
            context,
            timeline,
            request.preferences,
            self._generation,
            self._compiler,
            self.config,
        )
        beats = correct_locations(drafted, context.locations)

        continuity_result = await validate_continuity(
            beats, context, timeline, self._generation, self._compiler, self.config
        )
        validation = continuity_result.value

        previous_state = await self._previous_state(request)
        if self.config.cross_chapter_enabled:
            cross_chapter_issues = validate_cross_chapter_continuity(
                previous_state, beats, context, chapter
            )
            validation = merge_cross_chapter(validation, cross_chapter_issues)

        if should_refine(validation.issues, self.config):
            refine_result = await refine_beats(
                beats,
                validation.issues,
                context,
                timeline,
                self._generation,
                self._compiler,
                self.config,
            )
            beats = refine_result.value
            validation = validation.model_copy(
                update={
                    "issues": list(reattribute_issues(validation.issues, beats)),
                    "refined": not refine_result.degraded,
                }
            )

        beats = link_objects(beats, context)
        final_state = extract_chapter_state(beats, context, chapter, previous_state)
        await self._store_state(chapter, final_state)

        validation = with_count_summary(validation)
        log.info(
            "pipeline_complete",
            chapter=chapter,
            beats=len(beats),
            is_valid=validation.is_valid,
            critical=validation.critical_count,
            warnings=validation.warning_count,
            suggestions=validation.suggestion_count,
            refined=validation.refined,
            duration_seconds=round(time.perf_counter() - start_time, 2),
        )
        return BeatPipelineResult(
            beats=beats,
            timeline=timeline,
            validation=validation,
            chapter_final_state=final_state,
        )

    async def _previous_state(self, request: BeatPipelineRequest) -> ChapterFinalState | None:
        """The previous chapter's state: from the request, else from persistence."""
        if request.previous_chapter_state is not None or request.chapter_number <= 1:
            return request.previous_chapter_state
        if self._persistence is None:
            return None
        try:
            return await self._persistence.load_chapter_final_state(request.chapter_number - 1)
        except Exception as e:
            log.warning(
                "previous_state_load_failed",
                chapter=request.chapter_number,
                error=str(e),
            )
            return None

    async def _store_state(self, chapter: int, state: ChapterFinalState) -> None:
        if self._persistence is None:
            return
        try:
            await self._persistence.store_chapter_final_state(chapter, state)
        except Exception as e:
            log.warning("chapter_state_store_failed", chapter=chapter, error=str(e))


async def generate_beats(
    generation: GenerationService,
    *,
    chapter: ChapterOutline,
    chapter_number: int,
    synopsis: Synopsis | None = None,
    outline: Outline | None = None,
    library: LibraryData | None = None,
    preferences: ContentPreferences | None = None,
    previous_chapter_state: ChapterFinalState | None = None,
    persistence: PersistenceService | None = None,
    config: PipelineConfig | None = None,
) -> BeatPipelineResult:
    """Build a request from keyword arguments and run the pipeline once."""
    fields = {
        "synopsis": synopsis,
        "outline": outline,
        "library": library,
        "preferences": preferences,
    }
    request = BeatPipelineRequest(
        chapter=chapter,
        chapter_number=chapter_number,
        previous_chapter_state=previous_chapter_state,
        **{name: value for name, value in fields.items() if value is not None},
    )
    return await BeatPipeline(generation, persistence, config).run(request)
