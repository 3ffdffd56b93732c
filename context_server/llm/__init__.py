"""LLM access package.

Architectural role:
    Provides provider configuration, provider-specific payload construction, and the
    HTTP transport used by the API layer to invoke text-generation backends.

Module split:
    - `provider_config`: environment-driven endpoint, key, and provider selection.
    - `providers`: per-provider payload builders and response extractors.
    - `client`: single-attempt HTTP transport.
    - `service`: `ModelAdapter` facade (query, process, merge, summarize).

The failure taxonomy lives in `context_server.errors`.
"""

from context_server.errors import (
    ContextMergeFailed,
    ContextProcessingFailed,
    ContextSummarizationFailed,
    ModelQueryFailed,
)
from context_server.llm.providers import ProviderKind
from context_server.llm.service import ModelAdapter

__all__ = [
    "ContextMergeFailed",
    "ContextProcessingFailed",
    "ContextSummarizationFailed",
    "ModelAdapter",
    "ModelQueryFailed",
    "ProviderKind",
]
