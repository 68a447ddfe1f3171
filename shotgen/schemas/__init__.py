"""Pydantic schemas for the data contracts of the engine."""

from shotgen.schemas.segment import (
    BackendKind,
    BatchRequest,
    GenerationMode,
    GenerationOptions,
    SegmentRequest,
)
from shotgen.schemas.shot_list import Shot, ShotListDescription
from shotgen.schemas.results import (
    BackendCallResult,
    BatchReport,
    ErrorInfo,
    SegmentGenerationResult,
)

__all__ = [
    # Requests
    "GenerationMode",
    "BackendKind",
    "SegmentRequest",
    "GenerationOptions",
    "BatchRequest",
    # Shot lists
    "Shot",
    "ShotListDescription",
    # Results
    "BackendCallResult",
    "ErrorInfo",
    "SegmentGenerationResult",
    "BatchReport",
]
