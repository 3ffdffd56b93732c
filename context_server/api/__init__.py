"""Model Context server API adapter package.

Architectural role:
- Defines the external HTTP boundary (`http_api`) and its authentication (`auth`).
- Performs transport-level validation and response shaping.
- Delegates model work to `context_server.llm` and persistence to
  `context_server.storage`.
"""
