"""Processing modes: what callers may request and what results report."""
from enum import Enum
from typing import List, Union

from fitstream.processing.errors import ErrorKind, ProcessingError


class ProcessingMode(str, Enum):
    """Modes a caller may request."""
    AUTO = "auto"
    RAW = "raw"
    DERIVED = "derived"
    AI_SUMMARY = "ai-summary"


class ResultMode(str, Enum):
    """Mode labels a ProcessedResult may carry, fallback paths included."""
    AUTO = "auto"
    RAW = "raw"
    DERIVED = "derived"
    AI_SUMMARY = "ai-summary"
    RAW_FALLBACK = "raw-fallback"
    DERIVED_FALLBACK = "derived-fallback"
    EMERGENCY_FALLBACK = "emergency-fallback"


def get_supported_modes() -> List[str]:
    return [mode.value for mode in ProcessingMode]


def parse_mode(mode: Union[str, ProcessingMode]) -> ProcessingMode:
    """
    Convert a caller-supplied mode string into a ProcessingMode.

    Raises:
        ProcessingError(invalid_request): mode is not one of the supported values.
    """
    if isinstance(mode, ProcessingMode):
        return mode
    try:
        return ProcessingMode(mode)
    except ValueError:
        raise ProcessingError(
            ErrorKind.INVALID_REQUEST,
            f"unsupported processing mode {mode!r}; supported modes: "
            + ", ".join(get_supported_modes()),
            mode=str(mode),
            context=[("supported_modes", get_supported_modes())],
        ) from None


def validate_mode(mode: Union[str, ProcessingMode]) -> None:
    parse_mode(mode)
