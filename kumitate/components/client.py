"""Client for the assembly service."""
import logging
import re
from typing import Any, Dict, Iterator, Mapping, Optional
from uuid import uuid4

from kumitate.components.orchestration import (
        AssemblyOrchestrator, DEFAULT_MAX_REFRESH, DEFAULT_REFRESH_DELAY)
from kumitate.components.pagination import paginate
from kumitate.components.settings import ClientConfiguration
from kumitate.definitions.assemblies import (
        AssemblyCallbacks, AssemblyDescription, Credentials)
from kumitate.definitions.errors import ApiError, InconsistentResponseError
from kumitate.definitions.interfaces import (
        ITransportClient, TransportResponse)
from kumitate.definitions.signing import (
        DEFAULT_ALGORITHM, make_envelope, sign_smart_cdn_url, SignedEnvelope)
from kumitate.rest.definitions import JSON
from kumitate.rest.multipart import MultipartRequestBuilder
from kumitate.rest.serialization import deserialize_body
from kumitate.rest.transport import DEFAULT_ENDPOINT, RequestsTransport
from kumitate.rest.validation import check_json


logger = logging.getLogger(__name__)


_month_regex = re.compile(r'^\d{4}-\d{2}$')


def _check_result(body: JSON) -> JSON:
    """Raises ApiError if the body reports an error.

    The service sometimes reports errors with a successful status
    code, so this looks at the body only.
    """
    if isinstance(body.get('error'), str):
        raise ApiError(body)
    return body


class AssemblyClient:
    """Creates and manages assemblies.

    Runs of new assemblies are handled by an AssemblyOrchestrator,
    the other operations are single requests which return the parsed
    response, or raise ApiError if the service reports an error, or
    TransportError if the service could not be reached.
    """
    def __init__(
            self, credentials: Credentials,
            endpoint: str = DEFAULT_ENDPOINT,
            transport: Optional[ITransportClient] = None,
            max_refresh: int = DEFAULT_MAX_REFRESH,
            refresh_delay: float = DEFAULT_REFRESH_DELAY,
            algorithm: str = DEFAULT_ALGORITHM,
            validate_responses: bool = False) -> None:
        """Create an AssemblyClient.

        Args:
            credentials: Key and secret to authenticate with.
            endpoint: Base URL of the service, without trailing slash.
            transport: Client to send requests with, by default a
                    RequestsTransport for the endpoint.
            max_refresh: Maximum number of status fetches per assembly.
            refresh_delay: Time between status fetches, in seconds.
            algorithm: Hash algorithm to sign requests with.
            validate_responses: Whether to reject responses that do not
                    match the expected schema, rather than log a
                    warning.
        """
        if endpoint.endswith('/'):
            raise ValueError('Trailing slash in endpoint is not allowed')

        self._credentials = credentials
        self._endpoint = endpoint
        if transport is None:
            transport = RequestsTransport(endpoint)
        self._transport = transport
        self._max_refresh = max_refresh
        self._refresh_delay = refresh_delay
        self._algorithm = algorithm
        self._validate_responses = validate_responses
        self._builder = MultipartRequestBuilder(credentials, algorithm)
        self._last_used_assembly_url = ''

    @classmethod
    def from_settings(cls, settings: ClientConfiguration) -> 'AssemblyClient':
        """Creates a client from a configuration.

        This also sets the level of the package's logger to the
        configured level.
        """
        logging.getLogger('kumitate').setLevel(settings.loglevel.upper())
        transport = RequestsTransport(
                settings.endpoint, timeout=settings.timeout,
                max_retries=settings.max_retries,
                trust_store=settings.trust_store_path())
        return cls(
                settings.credentials, settings.endpoint, transport,
                settings.max_refresh, settings.refresh_delay,
                settings.signature_algorithm, settings.validate_responses)

    @property
    def last_used_assembly_url(self) -> str:
        """URL of the most recently created assembly, or ''."""
        return self._last_used_assembly_url

    def new_assembly(
            self, template_id: Optional[str] = None,
            notify_url: Optional[str] = None) -> AssemblyDescription:
        """Returns an empty description to add steps and inputs to."""
        return AssemblyDescription(template_id, notify_url)

    def calc_signature(
            self, params: Optional[JSON] = None) -> SignedEnvelope:
        """Adds auth data to params, then serializes and signs them.

        This is useful for having a browser upload directly to the
        service, using params signed on the server side.
        """
        return make_envelope(
                params, self._credentials, True, self._algorithm)

    def get_signed_smart_cdn_url(
            self, workspace: str, template: str, input_: str,
            url_params: Optional[Mapping[str, Any]] = None,
            expires_at: Optional[int] = None) -> str:
        """Returns a signed Smart CDN URL, see sign_smart_cdn_url."""
        return sign_smart_cdn_url(
                workspace, template, input_, self._credentials,
                url_params, expires_at)

    def create_assembly(
            self, description: AssemblyDescription,
            callbacks: Optional[AssemblyCallbacks] = None,
            sign: bool = True, assembly_id: Optional[str] = None
            ) -> AssemblyOrchestrator:
        """Prepares a run of an assembly.

        The returned orchestrator has not been started yet, call its
        run() or start() method to submit the assembly.

        Args:
            description: The assembly to run.
            callbacks: Functions to call as the run progresses.
            sign: Whether to sign the submission.
            assembly_id: Id to give the assembly, a random one by
                    default.

        Returns:
            An orchestrator for the run.
        """
        if assembly_id is None:
            assembly_id = uuid4().hex
        self._last_used_assembly_url = (
                f'{self._endpoint}/assemblies/{assembly_id}')
        logger.info(f'Creating assembly {assembly_id}')

        return AssemblyOrchestrator(
                description, self._credentials, self._transport,
                callbacks, sign, self._algorithm, self._max_refresh,
                self._refresh_delay, self._validate_responses, assembly_id)

    def run_assembly(
            self, description: AssemblyDescription,
            callbacks: Optional[AssemblyCallbacks] = None,
            sign: bool = True) -> Optional[JSON]:
        """Creates and runs an assembly, see AssemblyOrchestrator.run.

        Raises:
            AssemblyError: If the run failed.
        """
        return self.create_assembly(description, callbacks, sign).run()

    def get_assembly(self, assembly_id: str) -> JSON:
        """Returns the current status of an assembly.

        Raises:
            InconsistentResponseError: If the status has no URLs.
        """
        body = self._signed_get(f'/assemblies/{assembly_id}')
        check_json('AssemblyStatus', body, self._validate_responses)
        if body.get('assembly_url') is None or (
                body.get('assembly_ssl_url') is None):
            raise InconsistentResponseError(
                    'Server returned an incomplete assembly response'
                    ' (no URL)')
        return body

    def cancel_assembly(self, assembly_id: str) -> JSON:
        """Cancels an assembly.

        Returns:
            The status of the canceled assembly.
        """
        status = self.get_assembly(assembly_id)
        headers, body = self._builder.build(None)
        logger.info(f'Canceling assembly {assembly_id}')
        response = self._transport.delete_multipart(
                status['assembly_ssl_url'], headers, body)
        return _check_result(self._parse(response))

    def replay_assembly(
            self, assembly_id: str, notify_url: Optional[str] = None
            ) -> JSON:
        """Runs an assembly again, with the same inputs.

        Args:
            assembly_id: The assembly to replay.
            notify_url: URL to notify, instead of the one set before.
        """
        return self._post_form(
                f'/assemblies/{assembly_id}/replay', notify_url)

    def replay_assembly_notification(
            self, assembly_id: str, notify_url: Optional[str] = None
            ) -> JSON:
        """Sends the notification of a finished assembly again.

        Args:
            assembly_id: The assembly whose notification to send.
            notify_url: URL to notify, instead of the one set before.
        """
        return self._post_form(
                f'/assembly_notifications/{assembly_id}/replay', notify_url)

    def list_assemblies(self, params: Optional[JSON] = None) -> JSON:
        """Returns one page of assemblies.

        Args:
            params: Filters and paging, e.g. page, pagesize, type,
                    fromdate, todate and keywords.

        Returns:
            An object with the items on the page and their total count.
        """
        return self._list('/assemblies', params)

    def iter_assemblies(
            self, params: Optional[JSON] = None) -> Iterator[JSON]:
        """Iterates over all assemblies matching params."""
        return paginate(lambda page: self.list_assemblies(
                dict(params or {}, page=page)))

    def list_assembly_notifications(
            self, params: Optional[JSON] = None) -> JSON:
        """Returns one page of assembly notifications."""
        return self._list('/assembly_notifications', params)

    def iter_assembly_notifications(
            self, params: Optional[JSON] = None) -> Iterator[JSON]:
        """Iterates over all notifications matching params."""
        return paginate(lambda page: self.list_assembly_notifications(
                dict(params or {}, page=page)))

    def get_bill(self, month: str) -> JSON:
        """Returns the bill for a month.

        Args:
            month: The month, formatted as YYYY-MM.
        """
        if not _month_regex.match(month):
            raise ValueError(f'Expected a month like 2024-01, not {month}')
        return self._signed_get(f'/bill/{month}')

    def _list(self, path: str, params: Optional[JSON]) -> JSON:
        """Fetches and checks a page of a listing."""
        body = self._signed_get(path, params)
        check_json('ListResponse', body, True)
        return body

    def _signed_get(self, path: str, params: Optional[JSON] = None) -> JSON:
        """Does a GET with signed params in the query string."""
        envelope = make_envelope(
                params, self._credentials, True, self._algorithm)
        query = {'signature': str(envelope.signature),
                 'params': envelope.params}
        response = self._transport.get_status(
                self._endpoint + path, query)
        return _check_result(self._parse(response))

    def _post_form(self, path: str, notify_url: Optional[str]) -> JSON:
        """Does a POST with signed params in a form."""
        params = dict()     # type: Dict[str, Any]
        if notify_url is not None:
            params['notify_url'] = notify_url
        headers, body = self._builder.build(params)
        response = self._transport.post_multipart(path, headers, body)
        return _check_result(self._parse(response))

    def _parse(self, response: TransportResponse) -> JSON:
        return deserialize_body(response)
