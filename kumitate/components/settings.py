"""Client configuration."""
from pathlib import Path
from typing import AnyStr, IO, Optional, Union

import yatiml

from kumitate.components.orchestration import (
        DEFAULT_MAX_REFRESH, DEFAULT_REFRESH_DELAY)
from kumitate.definitions.assemblies import Credentials
from kumitate.definitions.signing import (
        DEFAULT_ALGORITHM, SUPPORTED_ALGORITHMS)
from kumitate.rest.transport import DEFAULT_ENDPOINT


_loglevels = ('critical', 'error', 'warning', 'info', 'debug')


class ClientConfiguration:
    """Configuration for a client.

    Attributes:
        credentials: Key and secret to authenticate with.
        endpoint: Base URL of the service.
        max_refresh: Maximum number of status fetches per assembly.
        refresh_delay: Time between status fetches, in seconds.
        signature_algorithm: Hash algorithm to sign requests with.
        timeout: Timeout for status requests, in seconds.
        max_retries: Maximum number of retries of a status request.
        validate_responses: Whether to reject responses that do not
                match the expected schema, rather than log a warning.
        trust_store: A file with trusted certificates/anchors.
        loglevel: Logging level to use, one of 'critical', 'error',
                'warning', 'info', or 'debug'.
    """
    def __init__(
            self,
            credentials: Credentials,
            endpoint: str = DEFAULT_ENDPOINT,
            max_refresh: int = DEFAULT_MAX_REFRESH,
            refresh_delay: float = DEFAULT_REFRESH_DELAY,
            signature_algorithm: str = DEFAULT_ALGORITHM,
            timeout: float = 60.0,
            max_retries: int = 5,
            validate_responses: bool = False,
            trust_store: Optional[str] = None,
            loglevel: str = 'info'
            ) -> None:
        """Create a ClientConfiguration object.

        Args:
            credentials: Key and secret to authenticate with.
            endpoint: Base URL of the service, without trailing slash.
            max_refresh: Maximum number of status fetches per assembly.
            refresh_delay: Time between status fetches, in seconds.
            signature_algorithm: One of 'sha1', 'sha256', 'sha384' or
                    'sha512'.
            timeout: Timeout for status requests, in seconds.
            max_retries: Maximum number of retries of a status request.
            validate_responses: Whether to reject responses that do
                    not match the expected schema.
            trust_store: Path to a file with trusted certificates.
            loglevel: Logging level to use, one of 'critical', 'error',
                    'warning', 'info', or 'debug'.
        """
        if signature_algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(
                    f'Unsupported signature algorithm {signature_algorithm}')

        if loglevel not in _loglevels:
            raise ValueError(
                    f'Invalid log level {loglevel}, expected one of'
                    f' {", ".join(_loglevels)}')

        if max_refresh < 0 or refresh_delay < 0:
            raise ValueError('Refresh settings must not be negative')

        self.credentials = credentials
        self.endpoint = endpoint
        self.max_refresh = max_refresh
        self.refresh_delay = refresh_delay
        self.signature_algorithm = signature_algorithm
        self.timeout = timeout
        self.max_retries = max_retries
        self.validate_responses = validate_responses
        self.trust_store = trust_store
        self.loglevel = loglevel

    def trust_store_path(self) -> Optional[Path]:
        """Returns the trust store location as a Path, if set."""
        if self.trust_store is None:
            return None
        return Path(self.trust_store)

    @classmethod
    def _yatiml_recognize(cls, node: yatiml.UnknownNode) -> None:
        pass

    @classmethod
    def _yatiml_savorize(cls, node: yatiml.Node) -> None:
        if node.is_mapping():
            if node.has_attribute('endpoint'):
                endpoint_node = node.get_attribute('endpoint')
                if endpoint_node.is_scalar(str):
                    endpoint = endpoint_node.get_value()
                    node.set_attribute('endpoint', endpoint.rstrip('/'))
            if node.has_attribute('loglevel'):
                level_node = node.get_attribute('loglevel')
                if level_node.is_scalar(str):
                    level = level_node.get_value()
                    node.set_attribute('loglevel', level.lower())


_load_settings = yatiml.load_function(ClientConfiguration, Credentials)


_default_config_location = Path('/etc/kumitate/kumitate.conf')


def load_settings(
        source: Union[str, Path, IO[AnyStr]] = _default_config_location
        ) -> ClientConfiguration:
    """Load settings from a source.

    The source can be a string containing YAML, pathlib.Path containing
    a path to a file to load, or a stream (e.g. an open file handle
    returned by open()).

    Args:
        source: The source to load from.

    Returns:
        An object loaded from the file.

    Raises:
        yatiml.RecognitionError: If the input is invalid.
    """
    return _load_settings(source)
