"""Read and delete access to stored analyses.

Every query is scoped to one identity; an analysis owned by someone else is
reported as not found.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from genealogy_buddy.core.exceptions import NotFoundError
from genealogy_buddy.core.logging import LoggerMixin
from genealogy_buddy.entitlements.tier_catalog import FeatureKey
from genealogy_buddy.models.analysis import Analysis


@dataclass(frozen=True)
class AnalysisPage:
    """One page of an identity's analyses, newest first."""

    items: list[Analysis]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit


class AnalysisHistory(LoggerMixin):
    """Stored analyses of one identity."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_for(
        self,
        identity_id: str,
        *,
        feature: FeatureKey | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> AnalysisPage:
        """List analyses, optionally for a single tool.

        Args:
            identity_id: Owner of the analyses
            feature: Only analyses of this tool
            page: 1-based page number
            limit: Page size

        Returns:
            The requested page and the total number of matching analyses
        """
        conditions = [Analysis.identity_id == identity_id]
        if feature is not None:
            conditions.append(Analysis.feature_key == feature.value)

        total = await self.db.scalar(
            select(func.count()).select_from(Analysis).where(*conditions)
        )
        result = await self.db.execute(
            select(Analysis)
            .where(*conditions)
            .order_by(Analysis.created_at.desc(), Analysis.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return AnalysisPage(
            items=list(result.scalars().all()),
            total=total or 0,
            page=page,
            limit=limit,
        )

    async def get(self, identity_id: str, analysis_id: UUID) -> Analysis:
        """Get one analysis.

        Raises:
            NotFoundError: No such analysis for this identity
        """
        result = await self.db.execute(
            select(Analysis)
            .where(Analysis.id == analysis_id, Analysis.identity_id == identity_id)
            .execution_options(populate_existing=True)
        )
        analysis = result.scalar_one_or_none()
        if analysis is None:
            raise NotFoundError(f"Analysis {analysis_id} not found")
        return analysis

    async def delete(self, identity_id: str, analysis_id: UUID) -> None:
        """Delete one analysis. Usage already counted for it is not refunded.

        Raises:
            NotFoundError: No such analysis for this identity
        """
        analysis = await self.get(identity_id, analysis_id)
        feature_key = analysis.feature_key
        await self.db.delete(analysis)
        await self.db.commit()
        self.logger.info(
            "analysis_deleted",
            analysis_id=str(analysis_id),
            feature=feature_key,
        )
