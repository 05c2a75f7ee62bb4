from __future__ import annotations

import importlib
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, cast

from ..config import OpenAISettings
from ..errors import ExternalCapabilityFailure, MalformedResponseError
from ..models import TokenUsage

logger = logging.getLogger(__name__)

OpenAI: Callable[..., Any] | None = None


@dataclass(slots=True)
class RequestMetadata:
    """What a request is for, used for logging."""

    purpose: str
    char_count: int = 0


@dataclass(slots=True)
class CompletionResult:
    text: str
    usage: TokenUsage | None = None


class OpenAICompletionClient:
    """
    Thin wrapper around the OpenAI Responses API.

    Each call is a single attempt bounded by ``request_timeout``; failures are
    raised as ExternalCapabilityFailure so callers can switch to their
    fallback instead of retrying.
    """

    def __init__(self, settings: OpenAISettings, api_key: str) -> None:
        if not api_key:
            raise ValueError("OpenAI API key is required when the OpenAI corrector is enabled.")
        self._settings = settings
        self._api_key = api_key
        self._client_factory: Callable[..., Any] = _load_openai_factory()
        self._client: Any | None = None

    @property
    def settings(self) -> OpenAISettings:
        return self._settings

    def complete(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        metadata: RequestMetadata,
    ) -> CompletionResult:
        """Send one request and return the model output."""
        try:
            client = self._ensure_client()
            response: Any = client.responses.create(
                model=self._settings.model,
                input=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self._settings.temperature,
                max_output_tokens=self._settings.max_output_tokens,
                top_p=self._settings.top_p,
                timeout=self._settings.request_timeout,
            )
        except Exception as exc:  # pragma: no cover - network-related
            logger.warning(
                "OpenAI %s request failed (%s chars): %s",
                metadata.purpose,
                metadata.char_count,
                exc,
            )
            raise ExternalCapabilityFailure(
                f"OpenAI {metadata.purpose} request failed: {exc}"
            ) from exc
        text = self._extract_text(response)
        logger.debug(
            "OpenAI %s request succeeded for %s chars", metadata.purpose, metadata.char_count
        )
        return CompletionResult(text=text, usage=self._extract_usage(response))

    def _ensure_client(self) -> Any:
        if self._client is None:
            self._client = self._client_factory(
                api_key=self._api_key,
                base_url=self._settings.base_url,
                organization=self._settings.organization,
            )
        return self._client

    @staticmethod
    def _extract_text(response: Any) -> str:
        output = getattr(response, "output", None)
        if not output:
            raise MalformedResponseError("OpenAI response is missing output content.")
        first = OpenAICompletionClient._materialize_item(output[0])
        content = first.get("content")
        if not content:
            raise MalformedResponseError("OpenAI response has no content segments.")
        segment = OpenAICompletionClient._materialize_item(content[0])
        text = segment.get("text")
        if not text:
            raise MalformedResponseError("OpenAI response segment missing text.")
        return text

    @staticmethod
    def _extract_usage(response: Any) -> TokenUsage | None:
        usage = getattr(response, "usage", None)
        if usage is None:
            return None
        prompt = int(getattr(usage, "input_tokens", 0) or 0)
        completion = int(getattr(usage, "output_tokens", 0) or 0)
        total = int(getattr(usage, "total_tokens", 0) or prompt + completion)
        return TokenUsage(prompt=prompt, completion=completion, total=total)

    @staticmethod
    def _materialize_item(item: Any) -> dict[str, Any]:
        if isinstance(item, dict):
            return cast(dict[str, Any], item)
        if hasattr(item, "model_dump"):
            dumpable: Any = item
            raw_dump: dict[str, Any] = dumpable.model_dump()
            return raw_dump
        if hasattr(item, "__dict__"):
            dumpable: Any = item
            raw_dict: dict[str, Any] = dict(dumpable.__dict__)
            return raw_dict
        raise MalformedResponseError("Unexpected OpenAI response format.")


def resolve_api_key(settings: OpenAISettings) -> str:
    """Resolve the API key from explicit config or the configured environment variable."""
    if settings.api_key:
        return settings.api_key
    env_name = settings.api_key_env or "OPENAI_API_KEY"
    value = os.environ.get(env_name)
    if value:
        return value
    raise ExternalCapabilityFailure(
        f"OpenAI API key not provided. Set it in the config or the {env_name} environment variable."
    )


def _load_openai_factory() -> Callable[..., Any]:
    """Dynamically import the OpenAI client factory to avoid hard dependency at import."""
    global OpenAI
    if OpenAI is not None:
        return OpenAI
    try:  # pragma: no cover - import guard
        module = importlib.import_module("openai")
    except Exception as exc:  # pragma: no cover - handled at runtime
        raise ExternalCapabilityFailure(
            "openai package is not installed. Install extras via 'pip install .[llm-openai]'."
        ) from exc
    openai_cls = getattr(module, "OpenAI", None)
    if openai_cls is None:  # pragma: no cover - very old client
        raise ExternalCapabilityFailure(
            "openai.OpenAI client class is unavailable in this environment."
        )
    OpenAI = cast(Callable[..., Any], openai_cls)
    return OpenAI
