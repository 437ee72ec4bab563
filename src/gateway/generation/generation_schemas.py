"""Pydantic schemas for the generation endpoint body."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GenerationBody(BaseModel):
    """Either a status check (``predictionId``) or a new generation."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    prediction_id: str | None = Field(default=None, alias="predictionId")
    prompt: str | None = None
    negative_prompt: str | None = Field(default=None, alias="negativePrompt")
    model_type: str | None = Field(default=None, alias="modelType")

    @property
    def is_status_check(self) -> bool:
        return "prediction_id" in self.model_fields_set


__all__ = ["GenerationBody"]
