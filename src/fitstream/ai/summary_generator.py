"""Claude-backed SummaryGenerator for the ai-summary processing mode."""
import logging

from fitstream.ai.claude_client import ClaudeClient
from fitstream.analysis.timeseries import TimeSeries
from fitstream.processing.models import Narrative
from fitstream.prompts.stream_summary import build_summary_prompt

logger = logging.getLogger(__name__)


class EmptySummaryError(RuntimeError):
    """Claude returned no text."""


class ClaudeSummaryGenerator:
    def __init__(self, client: ClaudeClient, max_tokens: int = 1500, redact_location: bool = True):
        self.client = client
        self.max_tokens = max_tokens
        self.redact_location = redact_location

    async def generate(self, series: TimeSeries, activity_id: int, prompt: str) -> Narrative:
        system_prompt, user_prompt = build_summary_prompt(
            series, activity_id, prompt, redact_location=self.redact_location,
        )
        logger.info(
            "Requesting summary for activity %s (%d prompt chars)", activity_id, len(user_prompt),
        )
        response = await self.client.complete(
            user_prompt, system_prompt=system_prompt, max_tokens=self.max_tokens,
        )
        if not response.text.strip():
            raise EmptySummaryError(f"empty summary for activity {activity_id}")

        return Narrative(
            activity_id=activity_id,
            prompt=prompt,
            summary=response.text,
            tokens_used=response.total_tokens,
            model=response.model,
        )
