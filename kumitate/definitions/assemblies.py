"""Classes for describing assemblies and their runs."""
from enum import Enum
from pathlib import Path
from typing import (
        Any, BinaryIO, Callable, Dict, NamedTuple, Optional, Union)

from kumitate.rest.definitions import JSON


class Credentials:
    """An auth key and the secret belonging to it."""
    def __init__(self, key: str, secret: str) -> None:
        """Create a Credentials object.

        Args:
            key: The public auth key identifying the account.
            secret: The shared secret used to sign requests.

        Raises:
            ValueError: If either is empty.
        """
        if not key:
            raise ValueError('Please provide an auth key')
        if not secret:
            raise ValueError('Please provide an auth secret')
        self._key = key
        self._secret = secret

    @property
    def key(self) -> str:
        """The public auth key."""
        return self._key

    @property
    def secret(self) -> str:
        """The shared secret."""
        return self._secret

    def __repr__(self) -> str:
        """Returns a string representation without the secret."""
        return f'Credentials({self._key}, ***)'


class FileInput:
    """An assembly input read from the local file system."""
    def __init__(
            self, path: Union[str, Path], filename: Optional[str] = None
            ) -> None:
        """Create a FileInput.

        Args:
            path: Location of the file.
            filename: Name to upload as, defaults to the path's
                    basename.
        """
        self.path = Path(path)
        self.filename = filename if filename else self.path.name

    def __repr__(self) -> str:
        """Returns a string representation of the object."""
        return 'FileInput({}, {})'.format(self.path, self.filename)


class StreamInput:
    """An assembly input read from a live, single-pass byte stream."""
    def __init__(
            self, stream: BinaryIO, filename: str,
            mime_type: str = 'application/octet-stream') -> None:
        """Create a StreamInput.

        Args:
            stream: Object with a read(size) method returning bytes.
                    It is read once, forward only.
            filename: Name to upload as.
            mime_type: MIME type to declare for the upload.
        """
        self.stream = stream
        self.filename = filename
        self.mime_type = mime_type

    def __repr__(self) -> str:
        """Returns a string representation of the object."""
        return 'StreamInput({}, {})'.format(self.filename, self.mime_type)


class AssemblyDescription:
    """Describes a job to submit: a pipeline plus its inputs.

    Attributes:
        template_id: Id of a template stored by the service, or None.
        notify_url: URL the service should notify on completion, or
                None.
        steps: Step configurations, indexed by step name. Each has a
                robot key.
        fields: Variables for the service to interpolate.
        files: Inputs backed by local files, indexed by field name.
        streams: Inputs backed by byte streams, indexed by field name.
    """
    def __init__(
            self, template_id: Optional[str] = None,
            notify_url: Optional[str] = None) -> None:
        """Create an empty AssemblyDescription.

        Args:
            template_id: Id of a template stored by the service.
            notify_url: URL to notify when the assembly is done.
        """
        self.template_id = template_id
        self.notify_url = notify_url
        self.steps = dict()     # type: Dict[str, Dict[str, Any]]
        self.fields = dict()    # type: Dict[str, Any]
        self.files = dict()     # type: Dict[str, FileInput]
        self.streams = dict()   # type: Dict[str, StreamInput]

    def step(
            self, name: str, robot: str,
            params: Optional[Dict[str, Any]] = None
            ) -> 'AssemblyDescription':
        """Adds or replaces a step.

        Args:
            name: Name of the step.
            robot: The processing robot to use, e.g. "/image/resize".
            params: Parameters for the robot.

        Returns:
            This description, for chaining.
        """
        config = dict(params) if params else dict()
        config['robot'] = robot
        self.steps[name] = config
        return self

    def field(self, name: str, value: Any) -> 'AssemblyDescription':
        """Sets a field, which must be JSON-serializable."""
        self.fields[name] = value
        return self

    def add_file(
            self, name: str, path: Union[str, Path],
            filename: Optional[str] = None) -> 'AssemblyDescription':
        """Adds an input from a local file.

        The file is not checked or opened until the assembly is
        submitted.

        Args:
            name: Form field name for the upload.
            path: Location of the file.
            filename: Name to upload as, defaults to the basename.

        Raises:
            RuntimeError: If an input with this name already exists.
        """
        self._check_unique(name)
        self.files[name] = FileInput(path, filename)
        return self

    def add_stream(
            self, name: str, stream: BinaryIO, filename: str,
            mime_type: str = 'application/octet-stream'
            ) -> 'AssemblyDescription':
        """Adds an input from a byte stream.

        Args:
            name: Form field name for the upload.
            stream: The stream to upload, read once.
            filename: Name to upload as.
            mime_type: MIME type of the data.

        Raises:
            RuntimeError: If an input with this name already exists.
        """
        self._check_unique(name)
        self.streams[name] = StreamInput(stream, filename, mime_type)
        return self

    def to_params(self) -> JSON:
        """Creates the params object to submit.

        This contains the steps, and fields, template_id and
        notify_url where set. Authentication data is added later,
        when the params are signed.
        """
        params = {'steps': {
                name: dict(config) for name, config in self.steps.items()}
                }   # type: Dict[str, Any]
        if self.fields:
            params['fields'] = dict(self.fields)
        if self.template_id is not None:
            params['template_id'] = self.template_id
        if self.notify_url is not None:
            params['notify_url'] = self.notify_url
        return params

    def __repr__(self) -> str:
        """Returns a string representation of the object."""
        return 'AssemblyDescription({}, {}, {} -> {})'.format(
                self.template_id, list(self.files) + list(self.streams),
                self.fields, self.steps)

    def _check_unique(self, name: str) -> None:
        """Checks that name is not used by a file or stream yet.

        Raises:
            RuntimeError: If the name is already in use.
        """
        if name in self.files or name in self.streams:
            raise RuntimeError(
                    f'Duplicate input name {name} among assembly files'
                    ' and streams')


def _ignore(*args: Any) -> None:
    pass


class AssemblyCallbacks(NamedTuple):
    """Functions to call as an assembly run progresses.

    on_update receives each non-terminal status body, and the body
    of a canceled or aborted assembly. on_success receives the body
    of a completed assembly. on_error receives an AssemblyError and
    the last body received, if any. on_complete is called last, once,
    with the final body, if any.
    """
    on_update: Callable[[JSON], None] = _ignore
    on_success: Callable[[JSON], None] = _ignore
    on_error: Callable[[Exception, Optional[JSON]], None] = _ignore
    on_complete: Callable[[Optional[JSON]], None] = _ignore


class RunState(Enum):
    """States an assembly run goes through."""
    CREATED = 'CREATED'
    BUILDING = 'BUILDING'
    SUBMITTING = 'SUBMITTING'
    POLLING = 'POLLING'
    FETCHING_STATUS = 'FETCHING_STATUS'
    SUCCEEDED = 'SUCCEEDED'
    ERRORED = 'ERRORED'
    TERMINAL_NONERROR = 'TERMINAL_NONERROR'
    ABANDONED = 'ABANDONED'

    def is_final(self) -> bool:
        """Whether no further I/O or callbacks follow this state."""
        return self in (
                RunState.SUCCEEDED, RunState.ERRORED,
                RunState.TERMINAL_NONERROR, RunState.ABANDONED)
