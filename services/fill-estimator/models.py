"""Pydantic models for the /analyze response."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

OutputFormat = Literal["empty", "json", "regex"]


class StructuredResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    fullness: float | None = None
    stone: float | None = None
    plastic: float | None = None
    other: float | None = None
    reasons: tuple[str, ...] = ()
    output_format: OutputFormat = Field(alias="outputFormat")


class AnalysisResponse(StructuredResult):
    raw: str
