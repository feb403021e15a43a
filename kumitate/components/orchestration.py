"""Runs assemblies, from submission until they are done."""
from concurrent.futures import Future
import logging
from threading import Event, Lock, Thread
from typing import Optional

from kumitate.components.status import classify, Classification, StatusKind
from kumitate.definitions.assemblies import (
        AssemblyCallbacks, AssemblyDescription, Credentials, RunState)
from kumitate.definitions.errors import (
        AssemblyError, ErrorKind, InconsistentResponseError,
        InputStreamError, InvalidResponseError, MissingInputFileError,
        TransportError)
from kumitate.definitions.interfaces import (
        ITransportClient, TransportResponse)
from kumitate.definitions.signing import DEFAULT_ALGORITHM
from kumitate.rest.definitions import JSON
from kumitate.rest.multipart import MultipartRequestBuilder
from kumitate.rest.serialization import deserialize_body
from kumitate.rest.validation import check_json


logger = logging.getLogger(__name__)


DEFAULT_MAX_REFRESH = 600

DEFAULT_REFRESH_DELAY = 1.0


class AssemblyOrchestrator:
    """Submits one assembly and follows it until it is done.

    The assembly is submitted as a signed multipart request. If the
    response says that the assembly is still in progress, its status
    is fetched again from its assembly_url after a fixed delay, until
    it is completed, canceled or aborted, or fails. There are at most
    max_refresh such status fetches.

    Callbacks are called in the thread running the assembly: first
    on_update for every in-progress status, then on_success or
    on_error, or on_update for a canceled or aborted assembly, and
    finally on_complete, exactly once.

    Failures are never retried here. A network error while submitting
    or fetching the status ends the run, as does an error reported by
    the service.
    """
    def __init__(
            self, description: AssemblyDescription,
            credentials: Credentials, transport: ITransportClient,
            callbacks: Optional[AssemblyCallbacks] = None,
            sign: bool = True, algorithm: str = DEFAULT_ALGORITHM,
            max_refresh: int = DEFAULT_MAX_REFRESH,
            refresh_delay: float = DEFAULT_REFRESH_DELAY,
            validate_responses: bool = False,
            assembly_id: Optional[str] = None) -> None:
        """Create an AssemblyOrchestrator.

        This does not do any I/O, call run() or start() to submit the
        assembly.

        Args:
            description: The assembly to run.
            credentials: Key and secret to authenticate with.
            transport: Client to send requests with.
            callbacks: Functions to call as the run progresses.
            sign: Whether to sign the submission.
            algorithm: Hash algorithm to sign with.
            max_refresh: Maximum number of status fetches.
            refresh_delay: Time to wait before each status fetch, in
                    seconds.
            validate_responses: If True, fail the run on responses
                    that do not match the expected schema, otherwise
                    log a warning.
            assembly_id: Id to create the assembly with, or None to
                    have the service choose one.
        """
        if max_refresh < 0:
            raise ValueError('max_refresh must not be negative')
        if refresh_delay < 0:
            raise ValueError('refresh_delay must not be negative')

        self._description = description
        self._builder = MultipartRequestBuilder(credentials, algorithm)
        self._transport = transport
        self._callbacks = callbacks if callbacks else AssemblyCallbacks()
        self._sign = sign
        self._max_refresh = max_refresh
        self._refresh_delay = refresh_delay
        self._validate_strictly = validate_responses
        self._assembly_id = assembly_id

        if assembly_id:
            self._path = f'/assemblies/{assembly_id}'
        else:
            self._path = '/assemblies'

        self._state = RunState.CREATED
        self._refresh_count = 0
        self._last_response = None  # type: Optional[JSON]
        self._abandoned = Event()
        self._claim_lock = Lock()

    @property
    def state(self) -> RunState:
        """The state the run is in."""
        return self._state

    @property
    def refresh_count(self) -> int:
        """The number of status fetches attempted so far."""
        return self._refresh_count

    @property
    def last_response(self) -> Optional[JSON]:
        """The most recently received status, if any."""
        return self._last_response

    @property
    def assembly_id(self) -> Optional[str]:
        """The id of the assembly, if known yet."""
        if self._last_response and self._last_response.get('assembly_id'):
            return self._last_response['assembly_id']
        return self._assembly_id

    @property
    def assembly_url(self) -> Optional[str]:
        """The status URL of the assembly, if known yet."""
        if self._last_response:
            return self._last_response.get('assembly_url')
        return None

    def run(self) -> Optional[JSON]:
        """Runs the assembly in the calling thread.

        Returns:
            The final status of a completed, canceled or aborted
            assembly, or None if the run was abandoned.

        Raises:
            AssemblyError: If the run failed, after on_error and
                    on_complete have been called.
            RuntimeError: If this run was started before.
        """
        self._claim()
        return self._execute()

    def start(self) -> 'Future[Optional[JSON]]':
        """Runs the assembly in a background thread.

        Returns:
            A future that resolves to what run() returns, or to the
            AssemblyError it raises.

        Raises:
            RuntimeError: If this run was started before.
        """
        self._claim()
        future = Future()   # type: Future[Optional[JSON]]

        def run_in_thread() -> None:
            if not future.set_running_or_notify_cancel():
                logger.info('Assembly run canceled before it started')
                self._abandoned.set()
                self._state = RunState.ABANDONED
                return
            try:
                future.set_result(self._execute())
            except Exception as e:
                future.set_exception(e)

        thread = Thread(
                target=run_in_thread, name='AssemblyOrchestrator',
                daemon=True)
        thread.start()
        return future

    def abandon(self) -> None:
        """Stops following the assembly.

        No further requests are made and no further callbacks are
        called, except for those of a response that is being
        processed already. This does not cancel the assembly at the
        service, and has no effect on a run that has ended already.
        """
        if self._state.is_final():
            return
        logger.info(f'Abandoning assembly {self.assembly_id}')
        self._abandoned.set()

    def _claim(self) -> None:
        """Marks the run as started.

        Raises:
            RuntimeError: If it was started before.
        """
        with self._claim_lock:
            if self._state is not RunState.CREATED:
                raise RuntimeError('An assembly can only be run once')
            self._state = RunState.BUILDING

    def _execute(self) -> Optional[JSON]:
        """Runs the state machine to the end."""
        if self._abandoned.is_set():
            self._state = RunState.ABANDONED
            return None

        try:
            response = self._submit()
            classification = classify(response)
            while not classification.kind.is_terminal():
                self._notify_update(response)
                next_response = self._poll()
                if next_response is None:
                    return None
                response = next_response
                classification = classify(response)
            return self._finish(classification)

        except AssemblyError as error:
            self._fail(error)
            raise

    def _submit(self) -> JSON:
        """Builds and sends the submission.

        Returns:
            The parsed response.

        Raises:
            AssemblyError: If an input file is missing or cannot be
                    read, or no valid response was received.
        """
        params = self._description.to_params()
        try:
            headers, body = self._builder.build(
                    params, self._sign, self._description.files,
                    self._description.streams)
        except MissingInputFileError as e:
            raise AssemblyError(ErrorKind.FILE_NOT_FOUND, cause=e)

        self._state = RunState.SUBMITTING
        logger.info(f'Submitting assembly to {self._path}')
        try:
            response = self._transport.post_multipart(
                    self._path, headers, body)
        except TransportError as e:
            raise AssemblyError(ErrorKind.TRANSPORT, cause=e)
        except InputStreamError as e:
            raise AssemblyError(ErrorKind.INPUT_STREAM, cause=e)

        return self._receive(response)

    def _poll(self) -> Optional[JSON]:
        """Waits, then fetches the current status.

        Returns:
            The parsed response, or None if the run was abandoned.

        Raises:
            AssemblyError: If the status cannot or may not be fetched,
                    or no valid response was received.
        """
        self._state = RunState.POLLING
        self._refresh_count += 1
        if self._refresh_count > self._max_refresh:
            raise AssemblyError(
                    ErrorKind.MAX_REFRESH, response=self._last_response)

        url = self.assembly_url
        if not url:
            raise AssemblyError(
                    ErrorKind.NO_ASSEMBLY_URL, response=self._last_response)

        if self._abandoned.wait(self._refresh_delay):
            self._state = RunState.ABANDONED
            return None

        self._state = RunState.FETCHING_STATUS
        logger.debug(
                f'Fetching status {self._refresh_count}/{self._max_refresh}'
                f' from {url}')
        try:
            response = self._transport.get_status(url)
        except TransportError as e:
            raise AssemblyError(
                    ErrorKind.TRANSPORT, response=self._last_response,
                    cause=e)

        if self._abandoned.is_set():
            self._state = RunState.ABANDONED
            return None

        return self._receive(response)

    def _receive(self, response: TransportResponse) -> JSON:
        """Parses and checks a response, and records it.

        Raises:
            AssemblyError: If the response is invalid.
        """
        try:
            body = deserialize_body(response)
        except InvalidResponseError as e:
            raise AssemblyError(
                    ErrorKind.INVALID_RESPONSE,
                    response=self._last_response, cause=e)

        self._last_response = body
        try:
            check_json('AssemblyStatus', body, self._validate_strictly)
        except InconsistentResponseError as e:
            raise AssemblyError(
                    ErrorKind.INVALID_RESPONSE, response=body, cause=e)

        logger.debug(f'Assembly status: {body.get("ok")}')
        return body

    def _finish(self, classification: Classification) -> JSON:
        """Ends the run for a terminal status.

        Raises:
            AssemblyError: If the status reports an error.
        """
        body = dict(classification.payload)
        if classification.kind is StatusKind.ERROR:
            raise AssemblyError.from_response(body)

        if classification.kind is StatusKind.SUCCESS:
            self._state = RunState.SUCCEEDED
            logger.info(f'Assembly {self.assembly_id} completed')
            self._callbacks.on_success(body)
        else:
            self._state = RunState.TERMINAL_NONERROR
            logger.info(f'Assembly {self.assembly_id} ended: {body["ok"]}')
            self._notify_update(body)

        self._callbacks.on_complete(body)
        return body

    def _fail(self, error: AssemblyError) -> None:
        """Ends the run after an error."""
        self._state = RunState.ERRORED
        logger.warning(f'Assembly {self.assembly_id} failed: {error}')
        self._callbacks.on_error(error, self._last_response)
        self._callbacks.on_complete(self._last_response)

    def _notify_update(self, body: JSON) -> None:
        """Calls on_update, logging rather than raising any error."""
        try:
            self._callbacks.on_update(body)
        except Exception:
            logger.exception('Error in assembly on_update callback')
