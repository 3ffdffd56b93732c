"""Provider-specific payload construction and response extraction.

Architectural role:
    Translates a provider-agnostic `(prompt, context, options)` triple into the wire
    body expected by each supported backend, and maps heterogeneous response bodies
    back to a single completion string.

Provider handling:
    - mistral: flat `prompt` field, serialized `context` only when non-empty.
    - openai: chat `messages`; non-empty context becomes a leading `system` message.
    - anthropic: legacy completion prompt (`Human:` / `Assistant:` framing).
    - generic: pass-through of prompt and context; no defaults injected.

Parameter handling:
    Built-in defaults are applied first, caller options are merged over them by key,
    then adapter-owned fields (`prompt`) are written last for every kind except
    generic.

Determinism:
    Pure functions. Output depends only on the arguments.
"""

import json
from enum import Enum


DEFAULT_MAX_TOKENS = 500
DEFAULT_TEMPERATURE = 0.7

# Fields computed from the prompt/context composition that options never replace.
PROTECTED_FIELDS = ("prompt",)


class ProviderKind(str, Enum):
    MISTRAL = "mistral"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GENERIC = "generic"

    @classmethod
    def parse(cls, value):
        """Resolve a configured provider string; unknown values fall back to generic."""
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        for kind in cls:
            if kind.value == normalized:
                return kind
        return cls.GENERIC


DEFAULT_MODELS = {
    ProviderKind.MISTRAL: "mistral-12b",
    ProviderKind.OPENAI: "gpt-3.5-turbo",
    ProviderKind.ANTHROPIC: "claude-2",
}


def serialize(value) -> str:
    """Compact JSON text used wherever structured data is embedded in prompts."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _apply_options(payload: dict, options: dict, protected: dict) -> dict:
    merged = {**payload, **(options or {})}
    for field in PROTECTED_FIELDS:
        if field in protected:
            merged[field] = protected[field]
        else:
            merged.pop(field, None)
    return merged


# ============================================================
# Payload builders
# ============================================================

def build_mistral_payload(prompt: str, context: dict, options: dict) -> dict:
    payload = {
        "prompt": prompt,
        "model": DEFAULT_MODELS[ProviderKind.MISTRAL],
    }
    if context:
        payload["context"] = serialize(context)
    payload["max_tokens"] = DEFAULT_MAX_TOKENS
    payload["temperature"] = DEFAULT_TEMPERATURE

    return _apply_options(payload, options, {"prompt": prompt})


def build_openai_payload(prompt: str, context: dict, options: dict) -> dict:
    messages = []
    if context:
        messages.append({"role": "system", "content": serialize(context)})
    messages.append({"role": "user", "content": prompt})

    payload = {
        "model": DEFAULT_MODELS[ProviderKind.OPENAI],
        "messages": messages,
        "max_tokens": DEFAULT_MAX_TOKENS,
        "temperature": DEFAULT_TEMPERATURE,
    }

    # No `prompt` field on the chat wire format, so a colliding option is dropped.
    return _apply_options(payload, options, {})


def build_anthropic_payload(prompt: str, context: dict, options: dict) -> dict:
    composed = f"Human: {prompt}\n\nAssistant:"
    if context:
        composed = f"{serialize(context)}\n\n{composed}"

    payload = {
        "model": DEFAULT_MODELS[ProviderKind.ANTHROPIC],
        "prompt": composed,
        "max_tokens_to_sample": DEFAULT_MAX_TOKENS,
        "temperature": DEFAULT_TEMPERATURE,
    }

    return _apply_options(payload, options, {"prompt": composed})


def build_generic_payload(prompt: str, context: dict, options: dict) -> dict:
    """Pass-through body; options may override any field, `prompt` included."""
    return {
        "prompt": prompt,
        "context": context,
        **(options or {}),
    }


# ============================================================
# Response extractors
# ============================================================

def _first_choice(data: dict):
    choices = data.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return {}


def _choice_message_content(data: dict):
    message = _first_choice(data).get("message")
    if isinstance(message, dict):
        return message.get("content")
    return None


def _first_text(*candidates) -> str | None:
    for candidate in candidates:
        if not candidate:
            continue
        if isinstance(candidate, str):
            return candidate
        return serialize(candidate)
    return None


def extract_mistral(data: dict) -> str:
    return _first_text(
        data.get("response"),
        data.get("completion"),
        data.get("output"),
    ) or ""


def extract_openai(data: dict) -> str:
    return _first_text(_choice_message_content(data)) or ""


def extract_anthropic(data: dict) -> str:
    return _first_text(data.get("completion")) or ""


def extract_generic(data: dict) -> str:
    text = _first_text(
        data.get("response"),
        data.get("completion"),
        _choice_message_content(data),
        _first_choice(data).get("text"),
        data.get("output"),
    )
    if text is None:
        return serialize(data)
    return text


PAYLOAD_BUILDERS = {
    ProviderKind.MISTRAL: build_mistral_payload,
    ProviderKind.OPENAI: build_openai_payload,
    ProviderKind.ANTHROPIC: build_anthropic_payload,
    ProviderKind.GENERIC: build_generic_payload,
}

EXTRACTORS = {
    ProviderKind.MISTRAL: extract_mistral,
    ProviderKind.OPENAI: extract_openai,
    ProviderKind.ANTHROPIC: extract_anthropic,
    ProviderKind.GENERIC: extract_generic,
}


def build_payload(kind: ProviderKind, prompt: str, context: dict, options: dict) -> dict:
    return PAYLOAD_BUILDERS[kind](prompt, context or {}, options or {})


def extract_completion(kind: ProviderKind, data: dict) -> str:
    return EXTRACTORS[kind](data)
