"""Concrete pipeline stages: fetch, parse, classify and filter."""

from __future__ import annotations

import logging
from typing import Any

from ..calendar.exceptions import FeedError
from ..calendar.feed_fetcher import FeedFetcher
from ..calendar.feed_parser import FeedParser
from .audience_classifier import UNKNOWN, AudienceClassifier
from .event_validator import EventValidator
from .pipeline import EventProcessingPipeline, ProcessingContext, ProcessingResult

logger = logging.getLogger(__name__)


class FetchStage:
    """Download the raw calendar document into ``context.raw_content``."""

    def __init__(self, fetcher: FeedFetcher) -> None:
        self._name = "Fetch"
        self.fetcher = fetcher

    @property
    def name(self) -> str:
        """Stage name for logging."""
        return self._name

    async def process(self, context: ProcessingContext) -> ProcessingResult:
        result = ProcessingResult(stage_name=self.name)
        try:
            context.raw_content = await self.fetcher.fetch(context.feed_id)
        except FeedError as e:
            result.add_error(f"Feed fetch failed: {e}", e)
            return result

        result.metadata["content_bytes"] = len(context.raw_content)
        return result


class ParseStage:
    """Parse ``context.raw_content`` into events, recording skipped records."""

    def __init__(self, parser: FeedParser) -> None:
        self._name = "Parse"
        self.parser = parser

    @property
    def name(self) -> str:
        """Stage name for logging."""
        return self._name

    async def process(self, context: ProcessingContext) -> ProcessingResult:
        result = ProcessingResult(stage_name=self.name)

        if not context.raw_content:
            result.add_error("No raw content to parse")
            return result

        parsed = self.parser.parse(context.raw_content, context.window_start, context.window_end)
        context.events = list(parsed.events)
        context.skipped = list(parsed.skipped)
        context.calendar_name = parsed.calendar_name

        result.events_in = parsed.total_records
        result.events_out = parsed.event_count
        result.events_filtered = len(parsed.skipped)
        result.events = context.events
        result.metadata["total_records"] = parsed.total_records
        result.metadata["skipped"] = len(parsed.skipped)
        if parsed.total_records and not parsed.events:
            result.add_warning(f"No events parsed from {parsed.total_records} records")
        return result


class ClassifyStage:
    """Attach an audience group to every event.

    Classification is total; an unexpected error still degrades to ``unknown``
    for that one event.
    """

    def __init__(self, classifier: AudienceClassifier) -> None:
        self._name = "Classify"
        self.classifier = classifier

    @property
    def name(self) -> str:
        """Stage name for logging."""
        return self._name

    async def process(self, context: ProcessingContext) -> ProcessingResult:
        result = ProcessingResult(stage_name=self.name, events_in=len(context.events))
        classified = []
        for event in context.events:
            try:
                audience = self.classifier.classify_event(event)
            except Exception:
                logger.exception("Classification failed for event %s; using unknown", event.id)
                audience = UNKNOWN
            classified.append(event.model_copy(update={"audience": audience}))

        context.events = classified
        result.events = classified
        result.events_out = len(classified)
        result.metadata["audience_breakdown"] = self.classifier.breakdown(classified)
        return result


class FilterStage:
    """Drop events that fail validation or are cancelled."""

    def __init__(self, validator: EventValidator) -> None:
        self._name = "Filter"
        self.validator = validator

    @property
    def name(self) -> str:
        """Stage name for logging."""
        return self._name

    async def process(self, context: ProcessingContext) -> ProcessingResult:
        result = ProcessingResult(stage_name=self.name, events_in=len(context.events))
        context.events = self.validator.filter_events(context.events)
        context.rejections = list(self.validator.last_rejections)

        result.events = context.events
        result.events_out = len(context.events)
        result.events_filtered = result.events_in - result.events_out
        result.metadata["rejected"] = len(context.rejections)
        if result.events_filtered:
            logger.debug(
                "Filter: %s -> %s events (%s rejected)",
                result.events_in,
                result.events_out,
                result.events_filtered,
            )
        return result


def create_feed_pipeline(
    fetcher: FeedFetcher,
    parser: FeedParser,
    classifier: AudienceClassifier,
    validator: EventValidator,
) -> EventProcessingPipeline:
    """Build the fetch -> parse -> classify -> filter pipeline."""
    return (
        EventProcessingPipeline()
        .add_stage(FetchStage(fetcher))
        .add_stage(ParseStage(parser))
        .add_stage(ClassifyStage(classifier))
        .add_stage(FilterStage(validator))
    )


def create_processing_pipeline(
    parser: Any, classifier: AudienceClassifier, validator: EventValidator
) -> EventProcessingPipeline:
    """Build the pipeline for already-downloaded content (no fetch stage)."""
    return (
        EventProcessingPipeline()
        .add_stage(ParseStage(parser))
        .add_stage(ClassifyStage(classifier))
        .add_stage(FilterStage(validator))
    )
