"""Interpretation of assembly status responses."""
from enum import Enum
from typing import Any, Mapping


COMPLETED = 'ASSEMBLY_COMPLETED'

# These end an assembly without it having failed.
TERMINAL_NONERROR_CODES = frozenset(['REQUEST_ABORTED', 'ASSEMBLY_CANCELED'])


class StatusKind(Enum):
    """What a status response says about an assembly."""
    ERROR = 'error'
    SUCCESS = 'success'
    TERMINAL_NONERROR = 'terminal-nonerror'
    NONTERMINAL = 'nonterminal'

    def is_terminal(self) -> bool:
        """Whether the assembly will not change any more."""
        return self is not StatusKind.NONTERMINAL


class Classification:
    """The kind of a status response, together with the response.

    Attributes:
        kind: What the response says.
        payload: The response body that was classified.
    """
    def __init__(self, kind: StatusKind, payload: Mapping[str, Any]) -> None:
        """Create a Classification."""
        self.kind = kind
        self.payload = payload

    def __repr__(self) -> str:
        """Returns a string representation of the object."""
        return 'Classification({}, {})'.format(
                self.kind.value, self.payload.get('ok'))


def classify(body: Mapping[str, Any]) -> Classification:
    """Classifies a status response body.

    A non-empty error field takes precedence over anything in ok.
    Any ok value that is not known to be terminal is taken to mean
    that the assembly is still in progress.

    Args:
        body: A parsed response body.

    Returns:
        The classification of the body.
    """
    if body.get('error'):
        return Classification(StatusKind.ERROR, body)

    ok = body.get('ok')
    if ok == COMPLETED:
        return Classification(StatusKind.SUCCESS, body)
    if isinstance(ok, str) and ok in TERMINAL_NONERROR_CODES:
        return Classification(StatusKind.TERMINAL_NONERROR, body)
    return Classification(StatusKind.NONTERMINAL, body)
