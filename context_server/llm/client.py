"""HTTP transport for outbound model requests.

Architectural role:
    Issues one POST against the configured model endpoint and returns the decoded
    JSON body. Payload shaping and output extraction live in
    `context_server.llm.providers`.

Model invocation flow:
    `service.ModelAdapter.query` -> `send_request(payload, ...)` -> decoded body.

Retry behavior:
    No retry loop is implemented. Each call is attempted exactly once. The timeout
    is whatever the caller passes (`None` waits indefinitely).

Failure handling model:
    Transport errors, non-2xx statuses, malformed JSON and non-object bodies are
    raised as `ModelQueryFailed`. The raw provider error body is logged, never
    returned.
"""

import logging

import requests

from context_server.errors import ModelQueryFailed


logger = logging.getLogger(__name__)


def build_headers(api_key=None) -> dict:
    headers = {
        "Content-Type": "application/json"
    }
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def _log_error_body(err: requests.exceptions.RequestException) -> None:
    """Log the provider error body, which is kept out of the raised message."""
    response = getattr(err, "response", None)
    if response is None:
        return
    logger.warning(
        "Model endpoint returned HTTP %s: %s",
        getattr(response, "status_code", None),
        str(getattr(response, "text", ""))[:500],
    )


def send_request(payload: dict, endpoint: str, api_key=None, timeout=None, session=None) -> dict:
    """Send one request to the model endpoint and decode its JSON body.

    Args:
        payload: Provider-shaped request body.
        endpoint: Absolute URL of the model endpoint.
        api_key: Optional bearer token for the `Authorization` header.
        timeout: Optional transport timeout in seconds.
        session: Optional `requests.Session`-like object; module-level
            `requests.post` is used when omitted.

    Returns:
        Decoded JSON object.

    Raises:
        ModelQueryFailed: on any transport, status, or decoding failure.
    """
    post = session.post if session is not None else requests.post

    try:
        response = post(
            endpoint,
            headers=build_headers(api_key),
            json=payload,
            timeout=timeout,
        )
        response.raise_for_status()
        data = response.json()

    except requests.exceptions.JSONDecodeError as err:
        logger.error("Model endpoint returned a malformed JSON body")
        raise ModelQueryFailed(f"malformed response body: {err}") from err

    except requests.exceptions.RequestException as err:
        logger.error("Error querying model at %s: %s", endpoint, err)
        _log_error_body(err)
        raise ModelQueryFailed(str(err)) from err

    except ValueError as err:
        logger.error("Model endpoint returned a malformed JSON body")
        raise ModelQueryFailed(f"malformed response body: {err}") from err

    if not isinstance(data, dict):
        raise ModelQueryFailed(
            f"expected a JSON object, got {type(data).__name__}"
        )

    return data
