"""
Structured errors raised by the stream-processing engine.

Every failure carries a kind, the activity and mode it concerns, and an
ordered list of diagnostic (key, value) pairs. Collaborator exceptions are
chained with `raise ProcessingError(...) from exc`, so the cause is available
as __cause__.

Kinds and how callers should treat them:
  invalid_request        caller mistake, surfaced verbatim, never retried
  data_corrupted         input series missing or unusable, never retried
  processing_failure     a handler failed; triggers the fallback chain
  processor_unavailable  a required collaborator is not configured
  ai_summary_failure     the summary generator failed or timed out
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ErrorKind(str, Enum):
    INVALID_REQUEST = "invalid_request"
    DATA_CORRUPTED = "data_corrupted"
    PROCESSING_FAILURE = "processing_failure"
    PROCESSOR_UNAVAILABLE = "processor_unavailable"
    AI_SUMMARY_FAILURE = "ai_summary_failure"


class ProcessingError(Exception):
    """A failure in mode dispatch, feature extraction or pagination."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        activity_id: Optional[int] = None,
        mode: Optional[str] = None,
        context: Optional[List[Tuple[str, Any]]] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.activity_id = activity_id
        self.mode = mode
        self.context: List[Tuple[str, Any]] = list(context or [])

    def with_context(self, key: str, value: Any) -> "ProcessingError":
        """Append a diagnostic pair and return self for chaining."""
        self.context.append((key, value))
        return self

    def context_value(self, key: str) -> Any:
        """First value recorded under key, or None."""
        for k, v in self.context:
            if k == key:
                return v
        return None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
            "activity_id": self.activity_id,
            "mode": self.mode,
            "context": [[k, _jsonable(v)] for k, v in self.context],
        }
        if self.__cause__ is not None:
            data["cause"] = str(self.__cause__)
        return data

    def __str__(self) -> str:
        text = f"[{self.kind.value}] {self.message}"
        if self.activity_id is not None:
            text += f" (activity {self.activity_id}"
            text += f", mode {self.mode})" if self.mode else ")"
        if self.context:
            text += ": " + ", ".join(f"{k}={v}" for k, v in self.context)
        if self.__cause__ is not None:
            text += f": {self.__cause__}"
        return text


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return str(value)
