"""Tracking intake payload"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from soundwrapped_report.models.db import ActivityType

class ActivityIntake(BaseModel):
    """
    One in-app event as posted by the tracking client.

    Only the shape is checked here: there is no authentication on the intake and
    the ids are not verified against the upstream API.
    """
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    user_id: str = Field(alias="userId", min_length=1)
    track_id: str = Field(alias="trackId", min_length=1)
    activity_type: ActivityType = Field(alias="activityType")
    duration_ms: Optional[int] = Field(None, alias="durationMs", ge=0)

    @field_validator("activity_type", mode="before")
    @classmethod
    def _upper_case_type(cls, value):
        return value.upper() if isinstance(value, str) else value

    @model_validator(mode='after')
    def _duration_only_for_plays(self) -> 'ActivityIntake':
        if self.activity_type != ActivityType.PLAY:
            self.duration_ms = None
        return self
