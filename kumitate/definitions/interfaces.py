"""Widely used interface definitions."""
from typing import Dict, Iterable, Optional


class TransportResponse:
    """An HTTP response as received, whatever its status.

    Attributes:
        status_code: The HTTP status code.
        raw_body: The response body, decoded as text.
    """
    def __init__(self, status_code: int, raw_body: str) -> None:
        """Create a TransportResponse."""
        self.status_code = status_code
        self.raw_body = raw_body

    def __repr__(self) -> str:
        """Returns a string representation of the object."""
        return 'TransportResponse({}, {})'.format(
                self.status_code, self.raw_body[:80])


class ITransportClient:
    """Interface for sending HTTP requests to the service.

    Implementations raise TransportError if no response was obtained,
    and return a TransportResponse for any response that was received,
    including those with error status codes.
    """
    def post_multipart(
            self, path: str, headers: Dict[str, str], body: Iterable[bytes]
            ) -> TransportResponse:
        """Sends a multipart POST request.

        The body may be consumed only once, so implementations must
        not retry this.

        Args:
            path: A path relative to the service endpoint, or an
                    absolute URL.
            headers: Headers to send, including Content-Type.
            body: Chunks of the encoded body.

        Returns:
            The response received.
        """
        raise NotImplementedError()

    def get_status(
            self, url: str, params: Optional[Dict[str, str]] = None
            ) -> TransportResponse:
        """Sends a GET request.

        Args:
            url: The absolute URL to get.
            params: Query parameters to add to the URL.

        Returns:
            The response received.
        """
        raise NotImplementedError()

    def delete_multipart(
            self, url: str, headers: Dict[str, str], body: Iterable[bytes]
            ) -> TransportResponse:
        """Sends a multipart DELETE request.

        Args:
            url: The absolute URL of the resource to delete.
            headers: Headers to send, including Content-Type.
            body: Chunks of the encoded body.

        Returns:
            The response received.
        """
        raise NotImplementedError()
