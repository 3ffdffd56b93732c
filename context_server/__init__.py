"""Model Context Protocol server.

Stores session-scoped contexts and forwards them, together with prompts, to a
configured model backend through a provider-normalizing adapter.
"""

__version__ = "1.0.0"
