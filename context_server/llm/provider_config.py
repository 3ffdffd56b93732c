"""Provider/runtime configuration for the model-adapter layer.

Architectural role:
    Centralizes outbound endpoint selection, provider kind, and credential lookup
    for `context_server.llm.service` and `context_server.llm.client`.

Model call flow integration:
    - `service.ModelAdapter` consumes `MODEL_PROVIDER` to pick payload/extraction
      strategies.
    - `client.send_request` consumes `MODEL_ENDPOINT`, `MODEL_TIMEOUT` and the
      resolved API key.

Determinism:
    Deterministic for a fixed process environment and key file. Values are resolved
    once at import time and never mutated afterwards.

Failure behavior:
    Missing key material is represented as `None`, which disables the outbound
    `Authorization` header. An unparsable timeout is ignored with a warning.
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


DEFAULT_MODEL_ENDPOINT = "http://localhost:8000/v1/completions"

# Outbound model routing controls.
MODEL_ENDPOINT = os.getenv("MODEL_ENDPOINT", DEFAULT_MODEL_ENDPOINT)
MODEL_PROVIDER = os.getenv("MODEL_PROVIDER", "generic")

# Shared with inbound authentication in `context_server.api.auth`.
API_KEY = os.getenv("API_KEY") or None


def load_key(path):
    """Load the outbound API key from environment override or key file.

    Resolution order:
        1. `MODEL_API_KEY` environment variable.
        2. Raw file contents at `path` (typically `MODEL_API_KEY_FILE`).
        3. The shared `API_KEY` used for inbound authentication.

    Args:
        path: Configured key file path or `None`.

    Returns:
        Key string or `None` when not available.

    Edge cases:
        - `None` path skips the file lookup.
        - Missing or empty file falls through to `API_KEY`.
    """
    env_value = os.getenv("MODEL_API_KEY")
    if env_value:
        return env_value
    if path and os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            value = f.read().strip()
        if value:
            return value
    return API_KEY


def parse_timeout(raw):
    """Parse `MODEL_TIMEOUT` seconds; `None` means the transport waits indefinitely."""
    if raw is None or not str(raw).strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid MODEL_TIMEOUT=%r", raw)
        return None
    return value if value > 0 else None


MODEL_API_KEY = load_key(os.getenv("MODEL_API_KEY_FILE"))
MODEL_TIMEOUT = parse_timeout(os.getenv("MODEL_TIMEOUT"))


# Context store and server settings consumed by `context_server.api`.
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
CONTEXT_DB_PATH = os.getenv("CONTEXT_DB_PATH", os.path.join(BASE_DIR, "data", "context_db.json"))
PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
