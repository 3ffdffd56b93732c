"""Failure taxonomy for the model-adapter and storage layers."""


class ContextServerError(Exception):
    """Base class for every failure surfaced by `context_server`."""


# ---------------------------------
# MODEL ADAPTER
# ---------------------------------


class ModelQueryFailed(ContextServerError):
    """Transport error, non-2xx status, or malformed body from the model endpoint."""

    def __init__(self, message):
        super().__init__(f"Model query failed: {message}")


class ContextProcessingFailed(ContextServerError):
    def __init__(self, message):
        super().__init__(f"Context processing failed: {message}")


class ContextMergeFailed(ContextServerError):
    def __init__(self, message):
        super().__init__(f"Context merge failed: {message}")


class ContextSummarizationFailed(ContextServerError):
    def __init__(self, message):
        super().__init__(f"Context summarization failed: {message}")


class InvalidContextData(ContextServerError):
    """Caller-supplied context data that cannot be serialized or merged."""


# ---------------------------------
# CONTEXT STORE
# ---------------------------------


class StoreError(ContextServerError):
    pass


class NotFoundError(StoreError):
    pass


class SessionNotFound(NotFoundError):
    def __init__(self, session_id):
        self.session_id = session_id
        super().__init__(f"Session with ID {session_id} not found")


class ContextNotFound(NotFoundError):
    def __init__(self, context_id):
        self.context_id = context_id
        super().__init__(f"Context with ID {context_id} not found")


class SessionAlreadyExists(StoreError):
    def __init__(self, session_id):
        self.session_id = session_id
        super().__init__(f"Session with ID {session_id} already exists")
