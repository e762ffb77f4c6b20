"""Saved analysis routes for signed-in users."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from genealogy_buddy.api.dependencies.database import get_db
from genealogy_buddy.api.dependencies.identity import SignedInIdentity
from genealogy_buddy.entitlements.tier_catalog import FeatureKey
from genealogy_buddy.history.service import AnalysisHistory
from genealogy_buddy.schemas.analyses import (
    AnalysisDetail,
    AnalysisListResponse,
    AnalysisSummary,
)

router = APIRouter()


@router.get("", response_model=AnalysisListResponse)
async def list_analyses(
    identity: SignedInIdentity,
    db: Annotated[AsyncSession, Depends(get_db)],
    feature: FeatureKey | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
) -> AnalysisListResponse:
    """List the user's saved analyses, newest first, optionally for one tool."""
    history = AnalysisHistory(db)
    result = await history.list_for(
        identity.identity_id, feature=feature, page=page, limit=limit
    )
    return AnalysisListResponse(
        items=[AnalysisSummary.from_analysis(a) for a in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@router.get("/{analysis_id}", response_model=AnalysisDetail)
async def get_analysis(
    analysis_id: UUID,
    identity: SignedInIdentity,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AnalysisDetail:
    """Get one saved analysis with its input and result."""
    history = AnalysisHistory(db)
    analysis = await history.get(identity.identity_id, analysis_id)
    return AnalysisDetail.from_analysis(analysis)


@router.delete("/{analysis_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_analysis(
    analysis_id: UUID,
    identity: SignedInIdentity,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    """Delete a saved analysis. Monthly usage is not refunded."""
    history = AnalysisHistory(db)
    await history.delete(identity.identity_id, analysis_id)
