"""Segment request and generation option schemas (caller inputs)."""

from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


StyleValue = Union[str, int, float, bool]


class FrozenStyleOptions(dict):
    """Read-only style hints. Serialises as an ordinary dict."""

    def _read_only(self, *args, **kwargs):
        raise TypeError("style options are read-only")

    __setitem__ = __delitem__ = __ior__ = _read_only
    clear = pop = popitem = setdefault = update = _read_only

    def __hash__(self):
        return hash(frozenset(self.items()))

    def __reduce__(self):
        return (type(self), (dict(self),))


class GenerationMode(str, Enum):
    """Prompt template selector."""

    STANDARD = "standard"
    PLUS = "plus"
    ENHANCED_CONTINUITY = "enhanced-continuity"


class BackendKind(str, Enum):
    """Generative-AI backend identity."""

    GEMINI = "gemini"
    VERTEX = "vertex"


class SegmentRequest(BaseModel):
    """Caller-supplied description of one video segment.

    Immutable once submitted.
    """

    segment_id: Optional[str] = Field(
        None,
        description="Caller's identifier for the segment"
    )
    scene_text: str = Field(..., description="What happens in the segment")
    duration_seconds: float = Field(
        ...,
        gt=0.0,
        description="Segment length in seconds"
    )
    continuity_markers: Tuple[str, ...] = Field(
        default_factory=tuple,
        description="Elements that must stay consistent with neighbouring segments"
    )
    style_options: Dict[str, StyleValue] = Field(
        default_factory=FrozenStyleOptions,
        description="Free-form style hints (e.g. {'look': 'noir', 'aspect': '2.39:1'})"
    )

    @field_validator('scene_text')
    @classmethod
    def validate_scene_text(cls, v: str) -> str:
        """Ensure scene_text is not empty."""
        if not v or not v.strip():
            raise ValueError("scene_text cannot be empty")
        return v

    @field_validator('continuity_markers')
    @classmethod
    def validate_continuity_markers(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        """Ensure no marker is blank."""
        for marker in v:
            if not marker.strip():
                raise ValueError("continuity markers cannot be blank")
        return v

    @field_validator('style_options')
    @classmethod
    def freeze_style_options(cls, v: Dict[str, StyleValue]) -> FrozenStyleOptions:
        return FrozenStyleOptions(v)

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "segmentId": "ep1-s03",
                "sceneText": "Mara steps off the night train onto an empty platform.",
                "durationSeconds": 8.0,
                "continuityMarkers": ["red scarf", "rain on the platform"],
                "styleOptions": {"look": "neo-noir"}
            }
        }
    )


class GenerationOptions(BaseModel):
    """Options that steer generation for a segment or a whole batch."""

    mode: GenerationMode = Field(
        GenerationMode.STANDARD,
        description="Selects the prompt template"
    )
    segment_index: Optional[int] = Field(
        None,
        ge=0,
        description="Position in the batch, echoed back for correlation"
    )
    backend: Optional[BackendKind] = Field(
        None,
        description="Backend override; defaults to the configured backend"
    )
    max_retries: int = Field(
        3,
        ge=1,
        description="Total attempts allowed per segment"
    )
    concurrency: int = Field(
        3,
        ge=1,
        description="Maximum backend calls in flight for a batch"
    )
    retry_parse_errors: bool = Field(
        False,
        description="Retry attempts whose output could not be parsed"
    )

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class BatchRequest(BaseModel):
    """Inbound batch submission envelope."""

    segments: List[SegmentRequest]
    options: Optional[GenerationOptions] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
