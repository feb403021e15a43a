"""General support functions and fixtures for the tests.

This is a PyTest special file, see its documentation.
"""
from collections import deque
import json
import logging

import pytest

from kumitate.definitions.assemblies import (
        AssemblyCallbacks, AssemblyDescription, Credentials)
from kumitate.definitions.interfaces import (
        ITransportClient, TransportResponse)


log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
logging.basicConfig(level=logging.INFO, format=log_format)
logging.getLogger('urllib3').setLevel(logging.WARNING)


def reply(body, status_code=200):
    """Creates a response with a JSON body."""
    return TransportResponse(status_code, json.dumps(body))


class FakeTransport(ITransportClient):
    """A transport that replays scripted responses.

    Each entry of responses is either a TransportResponse to return,
    or an exception to raise. Requests are recorded in calls as
    (method, url, headers, body bytes, params) tuples.
    """
    def __init__(self, responses=None):
        self.responses = deque(responses or [])
        self.calls = list()

    def post_multipart(self, path, headers, body):
        self.calls.append(('POST', path, headers, b''.join(body), None))
        return self._next()

    def get_status(self, url, params=None):
        self.calls.append(('GET', url, None, None, params))
        return self._next()

    def delete_multipart(self, url, headers, body):
        self.calls.append(('DELETE', url, headers, b''.join(body), None))
        return self._next()

    def methods(self):
        return [call[0] for call in self.calls]

    def _next(self):
        response = self.responses.popleft()
        if isinstance(response, Exception):
            raise response
        return response


class CallbackRecorder:
    """Records callback invocations, in order."""
    def __init__(self):
        self.events = list()

    def on_update(self, body):
        self.events.append(('update', body))

    def on_success(self, body):
        self.events.append(('success', body))

    def on_error(self, error, body):
        self.events.append(('error', error, body))

    def on_complete(self, body):
        self.events.append(('complete', body))

    def names(self):
        return [event[0] for event in self.events]

    def callbacks(self):
        return AssemblyCallbacks(
                self.on_update, self.on_success, self.on_error,
                self.on_complete)


@pytest.fixture
def credentials():
    return Credentials('test-key', 'test-secret')


@pytest.fixture
def recorder():
    return CallbackRecorder()


@pytest.fixture
def description():
    """A description with a single resize step."""
    description = AssemblyDescription()
    description.step('resize', '/image/resize', {'width': 75})
    return description


@pytest.fixture
def input_file(tmp_path):
    """A small local file to upload."""
    path = tmp_path / 'input.txt'
    path.write_bytes(b'Hello, world!\n')
    return path
