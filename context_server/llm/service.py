"""Prompt/context-to-completion adapter for LLM invocation.

Architectural role:
    Provides the canonical model entrypoint used by the HTTP layer. This module
    bridges provider payload shaping (`context_server.llm.providers`) to transport
    (`context_server.llm.client`) and composes the higher-level context operations
    (process, merge, summarize) on top of a single `query` primitive.

Model call flow:
    `query(prompt, context, options)` -> `providers.build_payload` ->
    `client.send_request` -> `providers.extract_completion` -> `{"completion": ...}`.

Token behavior:
    No explicit token-budget enforcement is implemented. Default `max_tokens` values
    come from the provider table and may be overridden per call via `options`.

Concurrency:
    The adapter holds only immutable configuration. Every call is an independent,
    blocking HTTP request; N logical calls produce N outbound requests.

Failure scenarios:
    `query` raises `ModelQueryFailed`. Composite operations wrap any failure into
    their own error kind and never fall back to a partial or structural result once
    the model-assisted path is chosen.
"""

import logging
from typing import Any

from context_server.llm import provider_config
from context_server.llm.client import send_request
from context_server.errors import (
    ContextMergeFailed,
    ContextProcessingFailed,
    ContextServerError,
    ContextSummarizationFailed,
    InvalidContextData,
)
from context_server.llm.providers import (
    ProviderKind,
    build_payload,
    extract_completion,
    serialize,
)
from context_server.utils import utc_now_iso


logger = logging.getLogger(__name__)


SUMMARIZE_TASK = "Summarize the following context."
MERGE_INSTRUCTION = "Merge the following contexts into a single coherent context."

# Control flags consumed by the adapter itself and never forwarded to providers.
ADAPTER_OPTIONS = ("useModel",)


def context_data(context: Any) -> Any:
    """Return the payload of a stored context record, or the object itself."""
    if isinstance(context, dict) and isinstance(context.get("data"), dict):
        return context["data"]
    return context


def _serialize_data(value: Any) -> str:
    try:
        return serialize(value)
    except (TypeError, ValueError) as err:
        raise InvalidContextData(f"context data is not JSON-serializable: {err}") from err


def _mergeable_data(context: Any, index: int) -> dict:
    """Return the mapping one context contributes to a structural merge.

    Stored records contribute their `data` (`None` counts as empty); a mapping
    without a `data` key is taken as bare context data.
    """
    if not isinstance(context, dict):
        raise InvalidContextData(
            f"context at index {index} is a {type(context).__name__}, expected an object"
        )
    if "data" not in context:
        return context
    data = context["data"]
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidContextData(
            f"context at index {index} has {type(data).__name__} data, expected an object"
        )
    return data


def _provider_options(options: dict | None) -> dict:
    return {
        key: value
        for key, value in (options or {}).items()
        if key not in ADAPTER_OPTIONS
    }


class ModelAdapter:
    """Stateless facade over one configured model endpoint."""

    def __init__(
        self,
        endpoint: str,
        api_key: str | None = None,
        provider: ProviderKind | str = ProviderKind.GENERIC,
        timeout: float | None = None,
        session=None,
    ) -> None:
        self._endpoint = endpoint
        self._api_key = api_key
        self._provider = ProviderKind.parse(provider)
        self._timeout = timeout
        self._session = session

    @staticmethod
    def from_env(session=None) -> "ModelAdapter":
        return ModelAdapter(
            endpoint=provider_config.MODEL_ENDPOINT,
            api_key=provider_config.MODEL_API_KEY,
            provider=provider_config.MODEL_PROVIDER,
            timeout=provider_config.MODEL_TIMEOUT,
            session=session,
        )

    @property
    def provider(self) -> ProviderKind:
        return self._provider

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def build_payload(self, prompt: str, context: dict | None = None, options: dict | None = None) -> dict:
        return build_payload(self._provider, prompt, context or {}, options or {})

    def query(self, prompt: str, context: dict | None = None, options: dict | None = None) -> dict:
        """Send one prompt to the configured provider and normalize the answer.

        Args:
            prompt: Prompt text, forwarded as-is (empty prompts included).
            context: Optional structured context; inclusion rules depend on the
                provider kind.
            options: Provider overrides merged over built-in defaults.

        Returns:
            `{"completion": <str>}`.

        Raises:
            ModelQueryFailed: transport error, non-2xx status, or malformed body.
        """
        payload = self.build_payload(prompt, context, options)
        logger.debug(
            "Querying %s provider at %s (model=%s)",
            self._provider.value,
            self._endpoint,
            payload.get("model"),
        )

        data = send_request(
            payload,
            self._endpoint,
            api_key=self._api_key,
            timeout=self._timeout,
            session=self._session,
        )
        return {"completion": extract_completion(self._provider, data)}

    def _run_task(self, context: Any, task: str, options: dict | None) -> str:
        prompt = f"Task: {task}\nContext: {_serialize_data(context_data(context))}"
        return self.query(prompt, {}, _provider_options(options))["completion"]

    def process_context(self, context: Any, task: str, options: dict | None = None) -> dict:
        """Run `task` over the serialized context via the model.

        The context is embedded in the prompt text; the structured context passed to
        `query` is always empty.

        Raises:
            ContextProcessingFailed: wraps any underlying failure.
        """
        try:
            completion = self._run_task(context, task, options)
        except ContextServerError as err:
            logger.exception("Error processing context")
            raise ContextProcessingFailed(str(err)) from err

        return {
            "result": completion,
            "data": {
                "original": context,
                "processed": completion,
                "task": task,
                "timestamp": utc_now_iso(),
            },
        }

    def merge_contexts(self, contexts: list, options: dict | None = None) -> dict:
        """Merge context records structurally or through one model call.

        Structural mode (default) folds each context's data left to right with
        later keys winning; nested values are replaced, not deep-merged. Stored
        records and bare data mappings are both accepted.
        `options["useModel"]` switches to a single model-assisted call embedding
        every context payload.

        Raises:
            ContextMergeFailed: wraps any underlying failure, including
                `InvalidContextData` for non-object contexts or data.
        """
        options = options or {}
        try:
            if not options.get("useModel"):
                merged: dict = {}
                for index, context in enumerate(contexts):
                    merged.update(_mergeable_data(context, index))
                return {"data": merged}

            prompt = (
                f"{MERGE_INSTRUCTION}\n"
                f"Contexts: {_serialize_data([context_data(context) for context in contexts])}"
            )
            completion = self.query(prompt, {}, _provider_options(options))["completion"]
        except ContextServerError as err:
            logger.exception("Error merging contexts")
            raise ContextMergeFailed(str(err)) from err

        return {
            "data": {
                "merged": completion,
                "sources": [
                    (context.get("id") or "unknown") if isinstance(context, dict) else "unknown"
                    for context in contexts
                ],
                "timestamp": utc_now_iso(),
            }
        }

    def summarize_context(self, context: Any, options: dict | None = None) -> dict:
        """Summarize a context through the model.

        Raises:
            ContextSummarizationFailed: wraps any underlying failure.
        """
        try:
            summary = self._run_task(context, SUMMARIZE_TASK, options)
        except ContextServerError as err:
            logger.exception("Error summarizing context")
            raise ContextSummarizationFailed(str(err)) from err

        return {
            "data": {
                "original": context,
                "summary": summary,
                "timestamp": utc_now_iso(),
            }
        }
