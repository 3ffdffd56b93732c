"""Context persistence package.

Module split:
    - `context_store`: JSON-file session/context CRUD used by the HTTP layer.
"""

from context_server.storage.context_store import ContextStore

__all__ = ["ContextStore"]
