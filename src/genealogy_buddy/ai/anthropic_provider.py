"""Anthropic Messages API adapter."""

import base64
import json
import re
from typing import Any

import anthropic
from anthropic import AsyncAnthropic

from genealogy_buddy.ai.prompts import MAX_TOKENS, SYSTEM_PROMPTS, TEXT_KINDS
from genealogy_buddy.ai.provider import AIResult, AnalysisKind, ImageInput
from genealogy_buddy.core.config import get_settings
from genealogy_buddy.core.exceptions import UpstreamFailureError
from genealogy_buddy.core.logging import LoggerMixin
from genealogy_buddy.core.metrics import track_ai_call, track_ai_failure
from genealogy_buddy.core.retry import RetryConfig, retry_with_backoff

# Failures worth one more try. Everything else is final.
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    anthropic.APITimeoutError,
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def extract_json(text: str) -> dict[str, Any] | None:
    """Parse a JSON object out of model output.

    Accepts bare JSON, JSON wrapped in a fenced code block, or JSON embedded
    in surrounding prose. Returns None if no object can be parsed.
    """
    candidate = text.strip()
    fenced = _FENCE_RE.match(candidate)
    if fenced:
        candidate = fenced.group(1)

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        start, end = candidate.find("{"), candidate.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            parsed = json.loads(candidate[start : end + 1])
        except json.JSONDecodeError:
            return None

    return parsed if isinstance(parsed, dict) else None


def image_block(image: ImageInput) -> dict[str, Any]:
    return {
        "type": "image",
        "source": {
            "type": "base64",
            "media_type": image.media_type,
            "data": base64.b64encode(image.data).decode("ascii"),
        },
    }


class AnthropicProvider(LoggerMixin):
    """``AIProvider`` backed by Claude."""

    def __init__(
        self,
        client: AsyncAnthropic | None = None,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_retries: int | None = None,
    ) -> None:
        settings = get_settings()
        # The SDK's own retries are disabled so that one retry policy applies.
        self.client = client or AsyncAnthropic(
            api_key=settings.anthropic_api_key or None,
            max_retries=0,
        )
        self.model = model or settings.ai_model
        self.temperature = temperature if temperature is not None else settings.ai_temperature
        retries = max_retries if max_retries is not None else settings.ai_max_retries
        self._create_message = retry_with_backoff(
            RetryConfig(
                max_attempts=retries + 1,
                initial_delay=0.5,
                max_delay=2.0,
                jitter_max=0.5,
                retry_exceptions=TRANSIENT_ERRORS,
            )
        )(self._send)

    async def _send(self, **request: Any) -> Any:
        return await self.client.messages.create(**request)

    def _build_messages(
        self,
        kind: AnalysisKind,
        payload: dict[str, Any],
        images: list[ImageInput] | None,
        history: list[dict[str, str]] | None,
    ) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        for turn in history or []:
            role = turn.get("role")
            content = turn.get("content")
            if role in ("user", "assistant") and content:
                messages.append({"role": role, "content": content})

        if kind in TEXT_KINDS and "message" in payload:
            text = str(payload["message"])
        else:
            text = (
                f"Analyze the following {kind.value} input for genealogical "
                f"information:\n\n{json.dumps(payload, ensure_ascii=False, default=str)}"
            )

        content: list[dict[str, Any]] = [image_block(image) for image in images or []]
        content.append({"type": "text", "text": text})
        messages.append({"role": "user", "content": content})
        return messages

    async def analyze(
        self,
        kind: AnalysisKind,
        payload: dict[str, Any],
        *,
        images: list[ImageInput] | None = None,
        history: list[dict[str, str]] | None = None,
    ) -> AIResult:
        request = {
            "model": self.model,
            "max_tokens": MAX_TOKENS[kind],
            "temperature": self.temperature,
            "system": SYSTEM_PROMPTS[kind],
            "messages": self._build_messages(kind, payload, images, history),
        }

        try:
            with track_ai_call(kind.value):
                response = await self._create_message(**request)
        except anthropic.APIStatusError as e:
            track_ai_failure(kind.value, f"status_{e.status_code}")
            self.logger.error(
                "ai_call_failed",
                kind=kind.value,
                status_code=e.status_code,
                error=str(e),
            )
            raise UpstreamFailureError(
                f"AI provider returned {e.status_code}",
                source="anthropic",
                status_code=e.status_code,
            ) from e
        except anthropic.APIError as e:
            reason = "timeout" if isinstance(e, anthropic.APITimeoutError) else "connection"
            track_ai_failure(kind.value, reason)
            self.logger.error("ai_call_failed", kind=kind.value, reason=reason, error=str(e))
            raise UpstreamFailureError(
                f"AI provider request failed: {reason}",
                source="anthropic",
            ) from e

        text = next(
            (block.text for block in response.content if block.type == "text"),
            None,
        )
        if not text:
            track_ai_failure(kind.value, "empty_response")
            raise UpstreamFailureError("AI provider returned no text", source="anthropic")

        if kind in TEXT_KINDS:
            content = {"text": text.strip()}
        else:
            content = extract_json(text)
            if content is None:
                track_ai_failure(kind.value, "unparseable_response")
                self.logger.warning("ai_response_unparseable", kind=kind.value)
                raise UpstreamFailureError(
                    "AI provider returned an unparseable response",
                    source="anthropic",
                )

        usage = getattr(response, "usage", None)
        result = AIResult(
            content=content,
            model=getattr(response, "model", None) or self.model,
            input_tokens=getattr(usage, "input_tokens", None),
            output_tokens=getattr(usage, "output_tokens", None),
            raw_text=text,
        )
        self.logger.info(
            "ai_call_completed",
            kind=kind.value,
            model=result.model,
            input_tokens=result.input_tokens,
            output_tokens=result.output_tokens,
        )
        return result
