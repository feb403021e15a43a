"""HTTP transport for talking to the assembly service."""
import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

import requests
from retrying import Retrying

from kumitate.__version__ import __version__
from kumitate.definitions.errors import TransportError
from kumitate.definitions.interfaces import ITransportClient, TransportResponse


logger = logging.getLogger(__name__)


DEFAULT_ENDPOINT = 'https://api2.transloadit.com'


class _RateLimited(Exception):
    """Raised internally to retry a rate-limited request."""
    def __init__(self, response: TransportResponse) -> None:
        super().__init__(f'Rate limited with status {response.status_code}')
        self.response = response


def _retry_on_connection_error(exception: BaseException) -> bool:
    """Helper for retrying connections."""
    return isinstance(exception, (requests.ConnectionError, _RateLimited))


def _is_rate_limited(response: TransportResponse) -> bool:
    """Checks whether the service asked us to slow down."""
    if response.status_code == 429:
        return True
    if response.status_code == 413:
        try:
            body = json.loads(response.raw_body)
        except ValueError:
            return False
        return isinstance(body, dict) and (
                body.get('error') == 'RATE_LIMIT_REACHED')
    return False


class RequestsTransport(ITransportClient):
    """Sends requests to the service using the requests library.

    GET requests are retried on connection errors and when rate
    limited, using exponential backoff. Requests with a body are
    sent once, as their bodies are streamed and cannot be replayed.
    """
    def __init__(
            self, endpoint: str = DEFAULT_ENDPOINT,
            timeout: float = 60.0, upload_timeout: float = 24 * 3600.0,
            max_retries: int = 5, backoff: float = 1.0,
            backoff_max: float = 8.0, trust_store: Optional[Path] = None,
            session: Optional[requests.Session] = None) -> None:
        """Create a RequestsTransport.

        Args:
            endpoint: Base URL of the service, without trailing slash.
            timeout: Timeout for GET requests, in seconds.
            upload_timeout: Timeout for requests with a body, in
                    seconds.
            max_retries: Maximum number of times to retry a GET.
            backoff: Initial delay between retries, in seconds.
            backoff_max: Maximum delay between retries, in seconds.
            trust_store: A file with trusted certificates/anchors.
            session: Session to use, a new one by default.

        Raises:
            ValueError: If the endpoint ends with a slash.
        """
        if endpoint.endswith('/'):
            raise ValueError('Trailing slash in endpoint is not allowed')

        self._endpoint = endpoint
        self._timeout = timeout
        self._upload_timeout = upload_timeout
        self._session = session if session is not None else (
                requests.Session())
        self._headers = {'Kumitate-Client': f'python-sdk:{__version__}'}

        # Convert trust store to argument for verify option of requests
        if trust_store:
            self._verify = str(trust_store)     # type: Union[str, bool]
        else:
            self._verify = True

        self._retrying = Retrying(
                stop_max_attempt_number=max_retries + 1,
                wait_exponential_multiplier=backoff * 1000,
                wait_exponential_max=backoff_max * 1000,
                retry_on_exception=_retry_on_connection_error)

    @property
    def endpoint(self) -> str:
        """Base URL of the service."""
        return self._endpoint

    def url_for(self, path: str) -> str:
        """Returns an absolute URL for a path or URL."""
        if path.startswith('http://') or path.startswith('https://'):
            return path
        return self._endpoint + path

    def post_multipart(
            self, path: str, headers: Dict[str, str], body: Iterable[bytes]
            ) -> TransportResponse:
        """Sends a multipart POST request, see ITransportClient."""
        return self._send('POST', self.url_for(path), headers, body)

    def delete_multipart(
            self, url: str, headers: Dict[str, str], body: Iterable[bytes]
            ) -> TransportResponse:
        """Sends a multipart DELETE request, see ITransportClient."""
        return self._send('DELETE', url, headers, body)

    def get_status(
            self, url: str, params: Optional[Dict[str, str]] = None
            ) -> TransportResponse:
        """Sends a GET request, retrying if needed.

        If the service is still rate limiting after the last retry,
        its last response is returned.

        Raises:
            TransportError: If no response could be obtained.
        """
        try:
            return self._retrying.call(self._get, url, params)
        except _RateLimited as e:
            logger.warning(f'Still rate limited, giving up on GET {url}')
            return e.response
        except requests.RequestException as e:
            raise TransportError(f'GET {url} failed: {e}') from e

    def _get(
            self, url: str, params: Optional[Dict[str, str]]
            ) -> TransportResponse:
        """Do an HTTP get, raising _RateLimited if needed."""
        logger.debug(f'GET {url}')
        r = self._session.get(
                url, params=params, headers=self._headers,
                timeout=self._timeout, verify=self._verify)
        response = TransportResponse(r.status_code, r.text)
        if _is_rate_limited(response):
            logger.warning(f'Rate limit reached, retrying GET {url}')
            raise _RateLimited(response)
        return response

    def _send(
            self, method: str, url: str, headers: Dict[str, str],
            body: Iterable[bytes]) -> TransportResponse:
        """Sends a request with a streamed body.

        Raises:
            TransportError: If no response could be obtained.
        """
        all_headers = dict(self._headers)
        all_headers.update(headers)
        logger.debug(f'{method} {url}')
        try:
            r = self._session.request(
                    method, url, data=body, headers=all_headers,
                    timeout=self._upload_timeout, verify=self._verify)
        except requests.RequestException as e:
            raise TransportError(f'{method} {url} failed: {e}') from e
        return TransportResponse(r.status_code, r.text)
