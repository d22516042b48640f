from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RenderParameters(BaseModel):
    desired_length: float | None = Field(default=None, gt=0)
    transition: str | None = None
    caption_text: str | None = Field(default=None, max_length=500)
    music_url: str | None = None
    output_resolution: str | None = Field(default=None, pattern=r"^\d{2,5}x\d{2,5}$")
    title: str | None = Field(default=None, max_length=200)


class RenderJobCreate(BaseModel):
    source_asset_ref: str = Field(min_length=1)
    renderer: Literal["shotstack", "creatomate"] | None = None
    parameters: RenderParameters = Field(default_factory=RenderParameters)

    @field_validator("source_asset_ref")
    @classmethod
    def strip_ref(cls, v: str) -> str:
        return v.strip()


class JobHandleOut(BaseModel):
    job_id: str


class JobStatusOut(BaseModel):
    job_id: str
    status: str
    result_url: str | None = None
    error: str | None = None
    progress: float | None = None
    estimated_seconds_remaining: float | None = None


class RenderJobOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_id: str
    renderer: str
    source_asset_ref: str
    parameters: dict
    status: str
    external_render_id: str | None
    result_asset_ref: str | None
    error_detail: str | None
    poll_attempts: int
    created_at: datetime
    updated_at: datetime


class UploadOut(BaseModel):
    asset_ref: str
    size: int
    content_type: str
