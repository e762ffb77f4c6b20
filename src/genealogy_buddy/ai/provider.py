"""AI provider interface.

Tool routes only depend on ``AIProvider``; the Anthropic adapter is the
production implementation and tests substitute a fake.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


class AnalysisKind(str, enum.Enum):
    """Kinds of analysis the provider is asked for, one per tool."""

    DOCUMENT = "document"
    PHOTO = "photo"
    DNA = "dna"
    TREE = "tree"
    RESEARCH = "research"


@dataclass(frozen=True)
class ImageInput:
    """Raw image bytes with their media type."""

    data: bytes
    media_type: str


@dataclass
class AIResult:
    """Parsed provider response."""

    content: dict[str, Any]
    model: str
    input_tokens: int | None = None
    output_tokens: int | None = None
    raw_text: str | None = field(default=None, repr=False)


@runtime_checkable
class AIProvider(Protocol):
    """Anything that can run an analysis."""

    async def analyze(
        self,
        kind: AnalysisKind,
        payload: dict[str, Any],
        *,
        images: list[ImageInput] | None = None,
        history: list[dict[str, str]] | None = None,
    ) -> AIResult:
        """Run one analysis.

        Raises:
            UpstreamFailureError: The provider failed or returned nothing usable
        """
        ...
