"""Tool request and response schemas."""

from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class DNAAnalysisRequest(BaseModel):
    """Schema for DNA interpretation requests."""

    dna_data: str = Field(
        ...,
        min_length=1,
        max_length=200_000,
        description="Raw DNA result text such as ethnicity estimates or a match list",
    )
    analysis_type: str | None = Field(
        None,
        max_length=50,
        description="Optional focus, e.g. 'ethnicity' or 'matches'",
    )


class TreeExpandRequest(BaseModel):
    """Schema for family tree expansion requests."""

    individuals: list[dict[str, Any]] = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Known individuals with whatever facts are available",
    )
    focus: str | None = Field(
        None,
        max_length=500,
        description="Person or branch to concentrate on",
    )


class ChatTurn(BaseModel):
    """One earlier message of a research conversation."""

    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1, max_length=10_000)


class ResearchChatRequest(BaseModel):
    """Schema for research assistant messages."""

    message: str = Field(..., min_length=1, max_length=4_000)
    history: list[ChatTurn] = Field(default_factory=list, max_length=50)


class ToolResponse(BaseModel):
    """Successful tool invocation."""

    model_config = ConfigDict(populate_by_name=True)

    analysis: dict[str, Any]
    analysis_id: UUID = Field(..., alias="analysisId")
    usage: dict[str, Any]
