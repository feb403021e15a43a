"""Different kinds of errors that may occur."""
from enum import Enum
from typing import Any, Dict, Optional


class KumitateError(Exception):
    """Base class for errors raised by this package."""
    pass


class ValidationError(KumitateError):
    """Signals that a message or object failed to validate."""
    pass


class TransportError(KumitateError):
    """Signals that no HTTP response could be obtained.

    This covers DNS failures, refused or reset connections and
    timeouts. It is never used for responses that were received
    successfully but describe an error.
    """
    pass


class InvalidResponseError(KumitateError):
    """Signals that a response body could not be interpreted.

    Attributes:
        status_code: HTTP status code of the response.
        raw_body: The body as received, for diagnostics.
    """
    def __init__(self, message: str, status_code: int, raw_body: str) -> None:
        """Create an InvalidResponseError.

        Args:
            message: Description of the problem.
            status_code: HTTP status code of the response.
            raw_body: The body as received.
        """
        super().__init__(message)
        self.status_code = status_code
        self.raw_body = raw_body


class InconsistentResponseError(KumitateError):
    """The service returned a body that is missing required data."""
    pass


class MissingInputFileError(KumitateError, FileNotFoundError):
    """A local file declared as an assembly input does not exist."""
    def __init__(self, field_name: str, path: str) -> None:
        """Create a MissingInputFileError.

        Args:
            field_name: The form field the file was declared under.
            path: The path that could not be read.
        """
        super().__init__(
                f'Input file "{path}" for field "{field_name}" does not'
                ' exist or is not readable')
        self.field_name = field_name
        self.path = path


class InputStreamError(KumitateError):
    """Reading an assembly input failed while its upload was produced.

    Attributes:
        field_name: The form field the input was declared under.
        cause: The exception raised while reading.
    """
    def __init__(self, field_name: str, cause: BaseException) -> None:
        """Create an InputStreamError.

        Args:
            field_name: The form field the input was declared under.
            cause: The exception raised while reading.
        """
        super().__init__(
                f'Could not read input for field "{field_name}": {cause}')
        self.field_name = field_name
        self.cause = cause


class ApiError(KumitateError):
    """The service reported an error in a response body.

    Attributes:
        code: The service's error code, e.g. "ASSEMBLY_NOT_FOUND".
        message: Human-readable message, if the service sent one.
        response: The complete response body.
    """
    def __init__(self, response: Dict[str, Any]) -> None:
        """Create an ApiError from a response body.

        Args:
            response: Body containing an error field.
        """
        self.code = str(response.get('error'))
        self.message = response.get('message')
        self.response = response
        if self.message:
            super().__init__(f'{self.code}: {self.message}')
        else:
            super().__init__(self.code)


class ErrorKind(Enum):
    """Reasons an assembly run can fail."""
    SERVICE = 'SERVICE'
    TRANSPORT = 'TRANSPORT'
    INVALID_RESPONSE = 'INVALID_RESPONSE'
    FILE_NOT_FOUND = 'FILE_NOT_FOUND'
    INPUT_STREAM = 'INPUT_STREAM'
    MAX_REFRESH = 'MAX_REFRESH'
    NO_ASSEMBLY_URL = 'NO_ASSEMBLY_URL'


class AssemblyError(KumitateError):
    """Describes why an assembly run ended in failure.

    Attributes:
        kind: What went wrong.
        code: The service's error code for SERVICE errors, otherwise
                the value of the kind.
        response: The last response received, if any.
        cause: The underlying exception, if any.
    """
    def __init__(
            self, kind: ErrorKind, code: Optional[str] = None,
            response: Optional[Dict[str, Any]] = None,
            cause: Optional[BaseException] = None) -> None:
        """Create an AssemblyError.

        Args:
            kind: What went wrong.
            code: Error code, defaults to the value of the kind.
            response: The last response received, if any.
            cause: The underlying exception, if any.
        """
        self.kind = kind
        self.code = code if code is not None else kind.value
        self.response = response
        self.cause = cause

        message = self.code
        if cause is not None:
            message += f': {cause}'
        elif response is not None and response.get('message'):
            message += f': {response["message"]}'
        super().__init__(message)

    @classmethod
    def from_response(cls, response: Dict[str, Any]) -> 'AssemblyError':
        """Creates an error from a body reporting a service error."""
        return cls(ErrorKind.SERVICE, str(response['error']), response)
