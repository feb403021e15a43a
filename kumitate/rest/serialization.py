"""Deserialization of service responses."""
import json

from kumitate.definitions.errors import InvalidResponseError
from kumitate.definitions.interfaces import TransportResponse
from kumitate.rest.definitions import JSON


def deserialize_body(response: TransportResponse) -> JSON:
    """Parses a response body, which must be a JSON object.

    The status code is not checked, as the service describes errors
    in the body, whatever the status code.

    Args:
        response: The response to parse.

    Returns:
        The parsed body.

    Raises:
        InvalidResponseError: If the body is not a JSON object.
    """
    try:
        body = json.loads(response.raw_body)
    except ValueError:
        raise InvalidResponseError(
                f'Unable to parse JSON, code: {response.status_code},'
                f' body: {response.raw_body[:255]}',
                response.status_code, response.raw_body)

    if not isinstance(body, dict):
        raise InvalidResponseError(
                f'Expected a JSON object, code: {response.status_code},'
                f' body: {response.raw_body[:255]}',
                response.status_code, response.raw_body)
    return body
