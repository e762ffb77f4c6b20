"""Saved analysis schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from genealogy_buddy.models.analysis import Analysis


class AnalysisSummary(BaseModel):
    """List entry for one saved analysis."""

    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    feature: str
    model: str | None = None
    created_at: datetime = Field(..., alias="createdAt")

    @classmethod
    def from_analysis(cls, analysis: Analysis) -> "AnalysisSummary":
        return cls(
            id=analysis.id,
            feature=analysis.feature_key,
            model=analysis.model,
            created_at=analysis.created_at,
        )


class AnalysisDetail(AnalysisSummary):
    """A saved analysis with its input and result."""

    input: dict[str, Any]
    result: dict[str, Any]
    input_tokens: int | None = Field(None, alias="inputTokens")
    output_tokens: int | None = Field(None, alias="outputTokens")

    @classmethod
    def from_analysis(cls, analysis: Analysis) -> "AnalysisDetail":
        return cls(
            id=analysis.id,
            feature=analysis.feature_key,
            model=analysis.model,
            created_at=analysis.created_at,
            input=analysis.input,
            result=analysis.result,
            input_tokens=analysis.input_tokens,
            output_tokens=analysis.output_tokens,
        )


class AnalysisListResponse(BaseModel):
    """A page of saved analyses, newest first."""

    items: list[AnalysisSummary]
    total: int
    page: int
    limit: int
    pages: int
