"""Event processing pipeline for eventboard.

Stages run in sequence and share a ``ProcessingContext``:

    pipeline = EventProcessingPipeline()
    pipeline.add_stage(FetchStage(fetcher))
    pipeline.add_stage(ParseStage(parser))
    pipeline.add_stage(ClassifyStage(classifier))
    pipeline.add_stage(FilterStage(validator))

    context = ProcessingContext(now=now, feed_id="...")
    result = await pipeline.process(context)

A stage that reports failure stops the pipeline; the aggregated result then
carries the errors and the stage's exception (if any) in ``failure``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol

from ..calendar.exceptions import ValidationFailure
from ..calendar.models import CalendarEvent, SkippedRecord

logger = logging.getLogger(__name__)


@dataclass
class ProcessingContext:
    """Context passed between pipeline stages.

    Stages read their inputs from and write their outputs to this context.
    """

    # Time context
    now: Optional[datetime] = None
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None

    # Source
    feed_id: Optional[str] = None
    calendar_name: Optional[str] = None

    # Processing state (modified by stages)
    raw_content: Optional[str] = None
    events: list[CalendarEvent] = field(default_factory=list)
    skipped: list[SkippedRecord] = field(default_factory=list)
    rejections: list[ValidationFailure] = field(default_factory=list)

    # Stage-specific data
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProcessingResult:
    """Result from a pipeline stage or complete pipeline execution."""

    success: bool = True
    events: list[CalendarEvent] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    failure: Optional[BaseException] = None

    # Statistics
    events_in: int = 0
    events_out: int = 0
    events_filtered: int = 0
    stage_name: str = ""

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)
        logger.warning("[%s] %s", self.stage_name, message)

    def add_error(self, message: str, failure: Optional[BaseException] = None) -> None:
        """Add an error message and mark as failed."""
        self.errors.append(message)
        self.success = False
        if failure is not None:
            self.failure = failure
        logger.error("[%s] %s", self.stage_name, message)


class EventProcessor(Protocol):
    """A single stage in the event processing pipeline."""

    async def process(self, context: ProcessingContext) -> ProcessingResult:
        """Process the context according to this stage's responsibility."""
        ...

    @property
    def name(self) -> str:
        """Name of this processing stage for logging."""
        ...


class EventProcessingPipeline:
    """Orchestrates event processing through multiple stages."""

    def __init__(self) -> None:
        self.stages: list[EventProcessor] = []

    def add_stage(self, stage: EventProcessor) -> EventProcessingPipeline:
        """Add a processing stage to the pipeline (builder pattern).

        Returns:
            Self for method chaining
        """
        self.stages.append(stage)
        logger.debug("Added stage to pipeline: %s", stage.name)
        return self

    async def process(self, context: ProcessingContext) -> ProcessingResult:
        """Execute all pipeline stages in sequence.

        Args:
            context: Processing context with initial state

        Returns:
            Aggregated result from all stages
        """
        logger.debug("Starting pipeline with %d stages", len(self.stages))
        aggregated_result = ProcessingResult(stage_name="Pipeline")

        for i, stage in enumerate(self.stages):
            stage_num = i + 1
            logger.debug("Executing stage %d/%d: %s", stage_num, len(self.stages), stage.name)

            try:
                stage_result = await stage.process(context)
            except Exception as e:
                aggregated_result.add_error(f"Stage {stage.name} raised exception: {e}", e)
                logger.exception("Stage %s failed with exception", stage.name)
                return aggregated_result

            logger.debug(
                "Stage %s/%s (%s) completed: success=%s, events_in=%s, events_out=%s, warnings=%s, errors=%s",
                stage_num,
                len(self.stages),
                stage.name,
                stage_result.success,
                stage_result.events_in,
                stage_result.events_out,
                len(stage_result.warnings),
                len(stage_result.errors),
            )

            aggregated_result.warnings.extend(stage_result.warnings)
            aggregated_result.errors.extend(stage_result.errors)

            if not stage_result.success:
                aggregated_result.success = False
                aggregated_result.failure = stage_result.failure
                logger.error("Pipeline stopped at stage %s (%s) due to failure", stage_num, stage.name)
                return aggregated_result

            aggregated_result.metadata.update(stage_result.metadata)

        aggregated_result.success = True
        aggregated_result.events = list(context.events)
        aggregated_result.events_out = len(context.events)

        logger.info(
            "Pipeline completed successfully: %s events, %s warnings",
            aggregated_result.events_out,
            len(aggregated_result.warnings),
        )
        return aggregated_result

    def clear_stages(self) -> None:
        """Remove all stages from the pipeline."""
        self.stages.clear()
        logger.debug("Cleared all pipeline stages")

    def __repr__(self) -> str:
        stage_names = [stage.name for stage in self.stages]
        return f"EventProcessingPipeline(stages={stage_names})"
