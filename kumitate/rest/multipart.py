"""Streaming multipart/form-data request bodies.

The service takes assembly submissions as multipart forms, which may
contain large uploads. A MultipartBody produces the encoded form as a
sequence of chunks, reading uploads as it goes, so that neither files
nor streams are ever held in memory as a whole. This also means that
streams need not be seekable, and that a body can be sent only once.
"""
import logging
import mimetypes
import os
from typing import (
        BinaryIO, Dict, Generator, Iterator, List, Mapping, Optional,
        Tuple, Union)

from urllib3.fields import RequestField
from urllib3.filepost import choose_boundary

from kumitate.definitions.assemblies import (
        Credentials, FileInput, StreamInput)
from kumitate.definitions.errors import (
        InputStreamError, MissingInputFileError)
from kumitate.definitions.signing import (
        DEFAULT_ALGORITHM, make_envelope, SignedEnvelope, SUPPORTED_ALGORITHMS)
from kumitate.rest.definitions import JSON


logger = logging.getLogger(__name__)


CHUNK_SIZE = 64 * 1024


_PartSource = Union[bytes, FileInput, StreamInput]


class MultipartBody:
    """An encoded multipart/form-data body, produced in chunks.

    Parts are encoded in the order they were added.
    """
    def __init__(self, boundary: Optional[str] = None) -> None:
        """Create an empty MultipartBody.

        Args:
            boundary: Boundary to use, a random one by default.
        """
        self.boundary = boundary if boundary else choose_boundary()
        self._parts = list()    # type: List[Tuple[str, bytes, _PartSource]]
        self._consumed = False

    @property
    def content_type(self) -> str:
        """The Content-Type header value for this body."""
        return f'multipart/form-data; boundary={self.boundary}'

    @property
    def field_names(self) -> List[str]:
        """Names of the parts, in encoding order."""
        return [name for name, _, _ in self._parts]

    def add_field(self, name: str, value: str) -> None:
        """Adds a text field."""
        field = RequestField(name=name, data=value)
        field.make_multipart()
        self._add(name, field, value.encode('utf-8'))

    def add_file(self, name: str, file_input: FileInput) -> None:
        """Adds an upload to be read from a local file.

        Raises:
            MissingInputFileError: If the file does not exist or cannot
                    be read.
        """
        path = file_input.path
        if not path.is_file() or not os.access(str(path), os.R_OK):
            raise MissingInputFileError(name, str(path))

        mime_type, _ = mimetypes.guess_type(file_input.filename)
        if mime_type is None:
            mime_type = 'application/octet-stream'

        field = RequestField(
                name=name, data=b'', filename=file_input.filename)
        field.make_multipart(content_type=mime_type)
        self._add(name, field, file_input)

    def add_stream(self, name: str, stream_input: StreamInput) -> None:
        """Adds an upload to be read from a stream."""
        field = RequestField(
                name=name, data=b'', filename=stream_input.filename)
        field.make_multipart(content_type=stream_input.mime_type)
        self._add(name, field, stream_input)

    def __iter__(self) -> Iterator[bytes]:
        """Produces the encoded body.

        Raises:
            RuntimeError: If the body was iterated over before.
        """
        if self._consumed:
            raise RuntimeError('A multipart body can only be sent once')
        self._consumed = True
        return self._generate()

    def _add(
            self, name: str, field: RequestField, source: _PartSource
            ) -> None:
        headers = field.render_headers().encode('utf-8')
        self._parts.append((name, headers, source))

    def _generate(self) -> Generator[bytes, None, None]:
        delimiter = f'--{self.boundary}\r\n'.encode('ascii')
        for name, headers, source in self._parts:
            yield delimiter + headers
            if isinstance(source, bytes):
                yield source
            elif isinstance(source, FileInput):
                logger.debug(f'Uploading file {source.path}')
                try:
                    f = source.path.open('rb')
                except OSError as e:
                    raise InputStreamError(name, e) from e
                with f:
                    yield from _read_chunks(name, f)
            else:
                logger.debug(f'Uploading stream {source.filename}')
                yield from _read_chunks(name, source.stream)
            yield b'\r\n'
        yield f'--{self.boundary}--\r\n'.encode('ascii')


def _read_chunks(
        name: str, stream: BinaryIO) -> Generator[bytes, None, None]:
    """Reads a stream to its end, in chunks of at most CHUNK_SIZE.

    Raises:
        InputStreamError: If reading fails, e.g. because the stream
                was closed.
    """
    while True:
        try:
            chunk = stream.read(CHUNK_SIZE)
        except Exception as e:
            raise InputStreamError(name, e) from e
        if not chunk:
            return
        yield chunk


def build_multipart(
        envelope: SignedEnvelope,
        files: Optional[Mapping[str, FileInput]] = None,
        streams: Optional[Mapping[str, StreamInput]] = None,
        boundary: Optional[str] = None) -> MultipartBody:
    """Creates a form body from signed params and uploads.

    The params field comes first, followed by the signature if there
    is one, then the streams and finally the files.

    Args:
        envelope: Serialized and possibly signed params.
        files: Local files to upload, indexed by field name.
        streams: Streams to upload, indexed by field name.
        boundary: Boundary to use, a random one by default.

    Returns:
        The body, ready to be sent.

    Raises:
        MissingInputFileError: If one of the files does not exist.
    """
    body = MultipartBody(boundary)
    body.add_field('params', envelope.params)
    if envelope.signature is not None:
        body.add_field('signature', envelope.signature)

    for name, stream_input in (streams or {}).items():
        body.add_stream(name, stream_input)

    for name, file_input in (files or {}).items():
        body.add_file(name, file_input)

    return body


class MultipartRequestBuilder:
    """Builds signed multipart requests for a set of credentials."""
    def __init__(
            self, credentials: Credentials,
            algorithm: str = DEFAULT_ALGORITHM) -> None:
        """Create a MultipartRequestBuilder.

        Args:
            credentials: Key and secret to authenticate with.
            algorithm: Hash algorithm to sign with.

        Raises:
            ValueError: If the algorithm is not supported.
        """
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f'Unsupported signature algorithm {algorithm}')
        self._credentials = credentials
        self._algorithm = algorithm

    def build(
            self, params: Optional[JSON], sign: bool = True,
            files: Optional[Mapping[str, FileInput]] = None,
            streams: Optional[Mapping[str, StreamInput]] = None
            ) -> Tuple[Dict[str, str], MultipartBody]:
        """Signs params and encodes them together with the uploads.

        Args:
            params: Request parameters, auth data is added.
            sign: Whether to sign the request.
            files: Local files to upload, indexed by field name.
            streams: Streams to upload, indexed by field name.

        Returns:
            Headers to send, and the body.

        Raises:
            MissingInputFileError: If one of the files does not exist.
        """
        envelope = make_envelope(
                params, self._credentials, sign, self._algorithm)
        body = build_multipart(envelope, files, streams)
        return {'Content-Type': body.content_type}, body
