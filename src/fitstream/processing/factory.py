"""Wiring: build the engine's components from Settings."""
import logging
from typing import Optional

from fitstream.ai.claude_client import ClaudeClient
from fitstream.ai.summary_generator import ClaudeSummaryGenerator
from fitstream.config import Settings
from fitstream.processing.dispatcher import ModeDispatcher
from fitstream.processing.pagination import PaginationCoordinator
from fitstream.sources.db_source import DbActivityDataSource

logger = logging.getLogger(__name__)


def build_summary_generator(settings: Settings) -> Optional[ClaudeSummaryGenerator]:
    if not settings.anthropic_api_key:
        logger.info("ANTHROPIC_API_KEY not set, ai-summary mode disabled.")
        return None
    client = ClaudeClient(
        api_key=settings.anthropic_api_key,
        model=settings.anthropic_model,
        max_retries=settings.stream.max_retries,
    )
    return ClaudeSummaryGenerator(client, redact_location=settings.stream.redaction_enabled)


def build_dispatcher(settings: Settings) -> ModeDispatcher:
    return ModeDispatcher(settings.stream, summary_generator=build_summary_generator(settings))


def build_coordinator(settings: Settings, engine) -> PaginationCoordinator:
    return PaginationCoordinator(
        DbActivityDataSource(engine),
        build_dispatcher(settings),
        settings.stream,
    )
