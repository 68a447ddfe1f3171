"""Shot list schema produced by the Response Parser."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class Shot(BaseModel):
    """One camera/action entry of a shot list."""

    # Strict: numbers arriving as strings or booleans are rejected, not converted
    shot_number: int = Field(..., ge=1, strict=True, description="1-based position in the shot list")
    start_time: float = Field(..., ge=0.0, strict=True, description="Seconds from segment start")
    end_time: float = Field(..., gt=0.0, strict=True, description="Seconds from segment start")
    camera: str = Field(..., description="Framing, angle and camera movement")
    action: str = Field(..., description="What is seen on screen")
    lighting: Optional[str] = Field(None, description="Lighting notes")
    sound: Optional[str] = Field(None, description="Sound or dialogue cues")
    continuity_markers: Optional[List[str]] = Field(
        None,
        description="Continuity elements visible in this shot"
    )

    @field_validator('camera', 'action')
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v

    @model_validator(mode='after')
    def validate_timing(self) -> 'Shot':
        """Ensure the shot has a positive duration."""
        if self.end_time <= self.start_time:
            raise ValueError(
                f"end_time ({self.end_time}) must be greater than start_time ({self.start_time})"
            )
        return self

    # Unknown keys from the backend are kept so nothing is lost on parse.
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='allow',
    )


class ShotListDescription(BaseModel):
    """Validated, ordered shot list for one segment."""

    shots: List[Shot] = Field(..., min_length=1, description="Ordered shots")
    summary: Optional[str] = Field(None, description="One-line segment summary")
    continuity_notes: Optional[List[str]] = Field(
        None,
        description="Notes that carry over to the next segment"
    )

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='allow',
        json_schema_extra={
            "example": {
                "shots": [
                    {
                        "shotNumber": 1,
                        "startTime": 0.0,
                        "endTime": 3.5,
                        "camera": "Wide shot, static, low angle",
                        "action": "The train pulls away, revealing Mara alone on the platform."
                    }
                ],
                "summary": "Mara arrives."
            }
        }
    )
