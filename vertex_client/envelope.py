"""
The {success, message, data} wrapper every Vertex endpoint responds with.

decode() classifies a raw outcome in a fixed order:

1. no response (transport failure)  -> TransportError
2. status outside [200, 300)        -> HTTPError (body is not parsed)
3. body is not an envelope          -> MalformedResponseError
4. success is false                 -> APIError(message)
5. otherwise                        -> the envelope, data left as decoded JSON
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

from .errors import APIError, HTTPError, MalformedResponseError, TransportError


@dataclass(frozen=True)
class Envelope:
    success: bool
    message: str = ""
    data: Any = None


def parse_envelope(body: bytes) -> Envelope:
    try:
        payload = json.loads(body)
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(f"Response body is not JSON: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedResponseError("Response body is not a JSON object")
    success = payload.get("success")
    if not isinstance(success, bool):
        raise MalformedResponseError("Response envelope has no boolean 'success' field")
    message = payload.get("message")
    if message is None:
        message = ""
    elif not isinstance(message, str):
        message = str(message)

    return Envelope(success=success, message=message, data=payload.get("data"))


def decode(
    status: Optional[int] = None,
    body: bytes = b"",
    reason: str = "",
    error: Optional[BaseException] = None,
) -> Envelope:
    """
    Classify one response.

    Args:
        status: HTTP status code, None when no response was received
        body: Raw response body
        reason: HTTP status text
        error: The transport failure when no response was received

    Returns:
        The successful Envelope; its data is not interpreted here

    Raises:
        TransportError, HTTPError, MalformedResponseError, APIError
    """
    if error is not None or status is None:
        if isinstance(error, TransportError):
            raise error
        raise TransportError(f"No response received: {error}", cause=error) from error

    if not 200 <= status < 300:
        raise HTTPError(status, reason, body)

    envelope = parse_envelope(body)
    if not envelope.success:
        raise APIError(envelope.message)
    return envelope
