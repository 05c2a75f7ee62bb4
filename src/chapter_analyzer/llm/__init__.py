from .openai_client import (
    CompletionResult,
    OpenAICompletionClient,
    RequestMetadata,
    resolve_api_key,
)

__all__ = [
    "CompletionResult",
    "OpenAICompletionClient",
    "RequestMetadata",
    "resolve_api_key",
]
