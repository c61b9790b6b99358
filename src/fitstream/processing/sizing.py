"""
Token-cost estimation for raw telemetry.

A raw series is priced as if serialised: each populated channel contributes
len(channel) * BYTES_PER_VALUE[channel] characters, and characters convert to
tokens with the configured token-per-character ratio. The byte widths are
typical JSON renderings of one value, separator included.
"""
import math
from typing import Optional

from fitstream.analysis.timeseries import CHANNELS, TimeSeries
from fitstream.config import StreamProcessingSettings

BYTES_PER_VALUE = {
    "time": 6,              # "3599,"
    "distance": 9,          # "10234.5,"
    "latlng": 22,           # "[37.77493,-122.41942],"
    "altitude": 7,          # "123.4,"
    "velocity_smooth": 6,   # "3.45,"
    "heartrate": 4,         # "152,"
    "cadence": 4,
    "watts": 4,
    "temp": 3,
    "moving": 6,            # "true,"
    "grade_smooth": 5,      # "-2.1,"
}
DEFAULT_BYTES_PER_VALUE = 6


class SizeEstimator:
    """Decides whether a raw series fits the context budget."""

    def __init__(self, settings: StreamProcessingSettings):
        self.settings = settings

    def estimate_cost(self, series: Optional[TimeSeries]) -> int:
        """Estimated tokens to hand `series` over verbatim. 0 for None or empty."""
        if series is None:
            return 0
        chars = 0
        for key, attr in CHANNELS.items():
            chars += len(getattr(series, attr)) * BYTES_PER_VALUE.get(key, DEFAULT_BYTES_PER_VALUE)
        return int(chars * self.settings.token_per_char_ratio)

    def should_process(self, series: Optional[TimeSeries]) -> bool:
        """True when the raw series exceeds the context budget."""
        return self.estimate_cost(series) > self.settings.max_context_tokens

    def estimate_text(self, text: str) -> int:
        """Tokens for already-rendered text."""
        return int(math.ceil(len(text) * self.settings.token_per_char_ratio))

    def tokens_per_point(self, series: TimeSeries) -> float:
        """Tokens for one sample across the series' populated channels."""
        chars = sum(
            BYTES_PER_VALUE.get(key, DEFAULT_BYTES_PER_VALUE)
            for key in series.available_channels()
        )
        return chars * self.settings.token_per_char_ratio

    def estimate_points(self, series: TimeSeries, point_count: int) -> int:
        """
        Tokens for `point_count` samples of this series' populated channels.
        Used to size pages before any content is rendered.
        """
        return int(self.tokens_per_point(series) * point_count)
