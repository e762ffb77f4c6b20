"""Metered genealogy tool routes.

Every route resolves the identity, applies the hourly rate limit, validates
its input, then hands the AI call to ``EntitlementService.run_metered``.
Nothing here talks to the provider outside that path.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from genealogy_buddy.ai.provider import AIProvider, AnalysisKind, ImageInput
from genealogy_buddy.api.dependencies.database import get_db
from genealogy_buddy.api.dependencies.entitlements import (
    AIProviderDep,
    EntitlementServiceDep,
    RateLimitedIdentity,
)
from genealogy_buddy.core.config import get_settings
from genealogy_buddy.core.exceptions import (
    PayloadTooLargeError,
    UnsupportedMediaTypeError,
    ValidationError,
)
from genealogy_buddy.entitlements.identity import Identity
from genealogy_buddy.entitlements.service import EntitlementService
from genealogy_buddy.entitlements.tier_catalog import FeatureKey
from genealogy_buddy.models.analysis import Analysis
from genealogy_buddy.schemas.tools import (
    DNAAnalysisRequest,
    ResearchChatRequest,
    ToolResponse,
    TreeExpandRequest,
)

router = APIRouter()

ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/webp", "image/gif"})
MAX_DOCUMENT_TEXT_CHARS = 100_000


async def read_image(upload: UploadFile, max_bytes: int) -> ImageInput:
    """Read and validate an uploaded image.

    Raises:
        UnsupportedMediaTypeError: Not an accepted image type
        PayloadTooLargeError: Larger than ``max_bytes``
        ValidationError: Empty file
    """
    media_type = (upload.content_type or "").lower()
    if media_type == "image/jpg":
        media_type = "image/jpeg"
    if media_type not in ALLOWED_IMAGE_TYPES:
        raise UnsupportedMediaTypeError(
            f"Unsupported file type {media_type or 'unknown'}",
            field="file",
            user_message="Please upload a JPEG, PNG, WebP or GIF image.",
        )

    data = await upload.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise PayloadTooLargeError(
            f"File exceeds {max_bytes} bytes",
            field="file",
            user_message=f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB.",
            details={"maxBytes": max_bytes},
        )
    if not data:
        raise ValidationError("Empty file", field="file", user_message="The uploaded file is empty.")

    return ImageInput(data=data, media_type=media_type)


async def run_tool(
    *,
    identity: Identity,
    feature: FeatureKey,
    kind: AnalysisKind,
    payload: dict[str, Any],
    service: EntitlementService,
    provider: AIProvider,
    db: AsyncSession,
    response: Response,
    images: list[ImageInput] | None = None,
    history: list[dict[str, str]] | None = None,
    requires_auth: bool = True,
) -> ToolResponse:
    """Run one metered analysis and persist it."""

    async def operation() -> tuple[Any, dict[str, Any]]:
        result = await provider.analyze(kind, payload, images=images, history=history)
        stored_input = dict(payload)
        if images:
            stored_input["images"] = [
                {"mediaType": image.media_type, "bytes": len(image.data)} for image in images
            ]
        analysis = Analysis(
            user_id=identity.user_id,
            identity_id=identity.identity_id,
            feature_key=feature.value,
            input=stored_input,
            result=result.content,
            model=result.model,
            input_tokens=result.input_tokens,
            output_tokens=result.output_tokens,
        )
        db.add(analysis)
        await db.commit()
        return analysis.id, result.content

    metered = await service.run_metered(
        identity,
        feature,
        operation,
        requires_auth=requires_auth,
    )
    response.headers.update(metered.usage_headers())
    analysis_id, content = metered.value

    return ToolResponse(
        analysis=content,
        analysis_id=analysis_id,
        usage=metered.usage_summary(),
    )


@router.post("/document/analyze", response_model=ToolResponse)
async def analyze_document(
    response: Response,
    identity: RateLimitedIdentity,
    service: EntitlementServiceDep,
    provider: AIProviderDep,
    db: Annotated[AsyncSession, Depends(get_db)],
    file: Annotated[UploadFile | None, File()] = None,
    text: Annotated[str | None, Form()] = None,
) -> ToolResponse:
    """Extract genealogical facts from a scanned document or its text."""
    settings = get_settings()
    images: list[ImageInput] = []
    payload: dict[str, Any] = {}

    if file is not None:
        images.append(await read_image(file, settings.max_document_bytes))
        payload["filename"] = file.filename
    if text is not None and text.strip():
        if len(text) > MAX_DOCUMENT_TEXT_CHARS:
            raise PayloadTooLargeError(
                "Document text too long",
                field="text",
                user_message="Document text is too long.",
            )
        payload["text"] = text.strip()
    if not images and "text" not in payload:
        raise ValidationError(
            "No document provided",
            field="file",
            user_message="Please upload a document image or paste its text.",
        )

    return await run_tool(
        identity=identity,
        feature=FeatureKey.DOCUMENTS,
        kind=AnalysisKind.DOCUMENT,
        payload=payload,
        images=images,
        service=service,
        provider=provider,
        db=db,
        response=response,
    )


@router.post("/photo/analyze", response_model=ToolResponse)
async def analyze_photo(
    response: Response,
    identity: RateLimitedIdentity,
    service: EntitlementServiceDep,
    provider: AIProviderDep,
    db: Annotated[AsyncSession, Depends(get_db)],
    file: Annotated[UploadFile, File()],
    context: Annotated[str | None, Form(max_length=2000)] = None,
) -> ToolResponse:
    """Tell the story behind a historical family photo."""
    settings = get_settings()
    image = await read_image(file, settings.max_photo_bytes)
    payload: dict[str, Any] = {"filename": file.filename}
    if context:
        payload["context"] = context

    return await run_tool(
        identity=identity,
        feature=FeatureKey.PHOTOS,
        kind=AnalysisKind.PHOTO,
        payload=payload,
        images=[image],
        service=service,
        provider=provider,
        db=db,
        response=response,
    )


@router.post("/dna/analyze", response_model=ToolResponse)
async def analyze_dna(
    request: DNAAnalysisRequest,
    response: Response,
    identity: RateLimitedIdentity,
    service: EntitlementServiceDep,
    provider: AIProviderDep,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ToolResponse:
    """Interpret DNA results in plain language."""
    return await run_tool(
        identity=identity,
        feature=FeatureKey.DNA,
        kind=AnalysisKind.DNA,
        payload=request.model_dump(exclude_none=True),
        service=service,
        provider=provider,
        db=db,
        response=response,
    )


@router.post("/tree/expand", response_model=ToolResponse)
async def expand_tree(
    request: TreeExpandRequest,
    response: Response,
    identity: RateLimitedIdentity,
    service: EntitlementServiceDep,
    provider: AIProviderDep,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ToolResponse:
    """Suggest likely relatives and research leads for a tree fragment."""
    return await run_tool(
        identity=identity,
        feature=FeatureKey.TREES,
        kind=AnalysisKind.TREE,
        payload=request.model_dump(exclude_none=True),
        service=service,
        provider=provider,
        db=db,
        response=response,
    )


@router.post("/research/chat", response_model=ToolResponse)
async def research_chat(
    request: ResearchChatRequest,
    response: Response,
    identity: RateLimitedIdentity,
    service: EntitlementServiceDep,
    provider: AIProviderDep,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ToolResponse:
    """Research assistant chat. Open to anonymous visitors within FREE limits."""
    return await run_tool(
        identity=identity,
        feature=FeatureKey.RESEARCH,
        kind=AnalysisKind.RESEARCH,
        payload={"message": request.message},
        history=[turn.model_dump() for turn in request.history],
        service=service,
        provider=provider,
        db=db,
        response=response,
        requires_auth=False,
    )
