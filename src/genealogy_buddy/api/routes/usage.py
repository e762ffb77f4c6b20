"""Usage reporting routes."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from genealogy_buddy.api.dependencies.entitlements import get_usage_reporter
from genealogy_buddy.api.dependencies.identity import CurrentIdentity
from genealogy_buddy.core.exceptions import StorageError
from genealogy_buddy.core.logging import get_logger
from genealogy_buddy.entitlements.reporter import UsageReporter
from genealogy_buddy.schemas.usage import UsageReportResponse

logger = get_logger(__name__)

router = APIRouter()


@router.get("/current", response_model=UsageReportResponse)
async def get_current_usage(
    identity: CurrentIdentity,
    reporter: Annotated[UsageReporter, Depends(get_usage_reporter)],
) -> UsageReportResponse:
    """
    Usage of every tool in the current month.

    Anonymous visitors see the usage of their anonymous identity against the
    FREE limits.
    """
    try:
        report = await reporter.report(identity)
    except SQLAlchemyError as exc:
        logger.error("usage_report_failed", error=str(exc))
        raise StorageError() from exc

    return UsageReportResponse(
        **report.to_dict(),
        authenticated=identity.is_authenticated,
    )
