"""Result schemas returned to callers of the orchestrator."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from shotgen.agents.base import AgentExecutionError, RetriesExhaustedError
from shotgen.orchestrator.retry_policy import RETRYABLE_ERROR_CODES
from shotgen.schemas.segment import BackendKind
from shotgen.schemas.shot_list import ShotListDescription


class BackendCallResult(BaseModel):
    """Raw payload of one backend call, tagged with where it came from."""

    text: str = Field(..., description="Raw text returned by the backend")
    backend: BackendKind = Field(..., description="Backend that served the call")
    model: str = Field(..., description="Model identifier used for the call")
    latency_ms: float = Field(..., ge=0.0, description="Wall-clock call latency")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorInfo(BaseModel):
    """Serialisable description of a per-segment failure."""

    kind: str = Field(..., description="Error taxonomy name (e.g. 'RateLimited')")
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    retryable: bool = Field(False, description="Whether the error class is transient")
    context: Dict[str, Any] = Field(default_factory=dict)
    cause: Optional['ErrorInfo'] = Field(
        None,
        description="Underlying error for RetriesExhausted"
    )

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_exception(cls, exc: BaseException) -> 'ErrorInfo':
        """Build an ErrorInfo from any exception."""
        if isinstance(exc, AgentExecutionError):
            cause = None
            if isinstance(exc, RetriesExhaustedError):
                cause = cls.from_exception(exc.last_error)
            return cls(
                kind=exc.kind,
                code=exc.error_code,
                message=exc.message,
                retryable=exc.error_code in RETRYABLE_ERROR_CODES,
                context=_json_safe(exc.context),
                cause=cause,
            )
        return cls(
            kind="UnexpectedError",
            code="UNEXPECTED_ERROR",
            message=str(exc) or type(exc).__name__,
            context={"error_type": type(exc).__name__},
        )


class SegmentGenerationResult(BaseModel):
    """Outcome for one segment of a batch."""

    segment_index: int = Field(..., ge=0, description="Position of the segment in the batch")
    success: bool
    shot_list: Optional[ShotListDescription] = None
    error: Optional[ErrorInfo] = None
    backend_used: Optional[BackendKind] = None
    attempts: int = Field(0, ge=0, description="Backend attempts made for this segment")
    latency_ms: Optional[float] = Field(None, ge=0.0)

    @model_validator(mode='after')
    def validate_outcome(self) -> 'SegmentGenerationResult':
        """Ensure success carries a shot list and failure carries an error."""
        if self.success:
            if self.shot_list is None or self.error is not None:
                raise ValueError("a successful result needs shot_list and no error")
        elif self.error is None or self.shot_list is not None:
            raise ValueError("a failed result needs error and no shot_list")
        return self

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BatchReport(BaseModel):
    """Success/failure statistics for a finished batch."""

    total_segments: int = Field(..., ge=0)
    successful_segments: int = Field(..., ge=0)
    failed_segment_indices: List[int] = Field(default_factory=list)
    total_attempts: int = Field(0, ge=0)

    @property
    def success_rate(self) -> float:
        if self.total_segments == 0:
            return 1.0
        return self.successful_segments / self.total_segments

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _json_safe(value: Any) -> Any:
    """Reduce error context to JSON-serialisable primitives."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return str(value)
