from datetime import datetime, timedelta, timezone
import hashlib
import hmac
import json
import time

import pytest

from kumitate.definitions.signing import (
        expiry_timestamp, format_signature, make_envelope, sign,
        sign_smart_cdn_url)


def test_sign_is_deterministic():
    params = '{"auth": {"key": "test-key"}, "steps": {}}'
    assert sign(params, 'secret') == sign(params, 'secret')
    assert sign(params, 'secret') != sign(params + ' ', 'secret')
    assert sign(params, 'secret') != sign(params, 'other secret')


def test_sign_known_value():
    # HMAC-SHA1 example value from RFC 2202, test case 2
    assert sign('what do ya want for nothing?', 'Jefe', 'sha1') == (
            'effcdf6ae5eb2fa2d27416d5f184df9c259a7c79')


def test_sign_lengths():
    assert len(sign('x', 'secret', 'sha1')) == 40
    assert len(sign('x', 'secret', 'sha256')) == 64
    assert len(sign('x', 'secret', 'sha384')) == 96
    assert len(sign('x', 'secret', 'sha512')) == 128
    assert sign('x', 'secret') == sign('x', 'secret', 'sha384')


def test_sign_errors():
    with pytest.raises(ValueError):
        sign('x', '')
    with pytest.raises(ValueError):
        sign('x', 'secret', 'md5')


def test_format_signature():
    signature = format_signature('x', 'secret', 'sha256')
    assert signature == 'sha256:' + sign('x', 'secret', 'sha256')


def test_expiry_timestamp():
    now = datetime(2024, 1, 2, 3, 4, 5, 678901, tzinfo=timezone.utc)
    assert expiry_timestamp(now=now) == '2024-01-03T03:04:05.678Z'
    assert expiry_timestamp(timedelta(hours=1), now) == (
            '2024-01-02T04:04:05.678Z')


def test_envelope_signed(credentials):
    params = {'steps': {'resize': {'robot': '/image/resize'}}}
    envelope = make_envelope(params, credentials)

    sent = json.loads(envelope.params)
    assert sent['steps'] == params['steps']
    assert sent['auth']['key'] == 'test-key'
    assert sent['auth']['expires'] == envelope.expires
    assert envelope.expires.endswith('Z')

    algorithm, digest = envelope.signature.split(':')
    assert algorithm == 'sha384'
    assert digest == sign(envelope.params, 'test-secret', 'sha384')

    # input is not modified
    assert 'auth' not in params


def test_envelope_unsigned(credentials):
    envelope = make_envelope({'steps': {}}, credentials, False)
    assert envelope.signature is None
    assert envelope.expires is None
    assert json.loads(envelope.params) == {
            'steps': {}, 'auth': {'key': 'test-key'}}


def test_envelope_keeps_auth(credentials):
    params = {'auth': {
            'key': 'other-key', 'expires': '2030-01-01T00:00:00.000Z'}}
    envelope = make_envelope(params, credentials, True, 'sha1')
    sent = json.loads(envelope.params)
    assert sent['auth'] == params['auth']
    assert envelope.expires == '2030-01-01T00:00:00.000Z'
    assert envelope.signature.startswith('sha1:')


def test_envelope_empty_params(credentials):
    envelope = make_envelope(None, credentials)
    sent = json.loads(envelope.params)
    assert list(sent) == ['auth']


def test_smart_cdn_url(credentials):
    url = sign_smart_cdn_url(
            'my-app', 'test-smart-cdn', 'inputs/prinsengracht.jpg',
            credentials, {'width': 200, 'height': 100}, 1732550672867)

    to_sign = (
            'my-app/test-smart-cdn/inputs%2Fprinsengracht.jpg'
            '?auth_key=test-key&exp=1732550672867&height=100&width=200')
    digest = hmac.new(
            b'test-secret', to_sign.encode('utf-8'),
            hashlib.sha256).hexdigest()

    assert url == (
            'https://my-app.tlcdn.com/test-smart-cdn/'
            'inputs%2Fprinsengracht.jpg'
            '?auth_key=test-key&exp=1732550672867&height=100&width=200'
            '&sig=sha256%3A' + digest)


def test_smart_cdn_url_params(credentials):
    url = sign_smart_cdn_url(
            'my-app', 'thumbs', 'a b.jpg', credentials,
            {'f': ['png', 'webp'], 'strip': True, 'q': 'x y', 'r': 1.0,
             'auth_key': 'ignored', 'exp': 'ignored'},
            1000)

    assert url.startswith('https://my-app.tlcdn.com/thumbs/a%20b.jpg?')
    query = url.split('?', 1)[1]
    assert query.startswith(
            'auth_key=test-key&exp=1000&f=png&f=webp&q=x+y&r=1&strip=true'
            '&sig=sha256%3A')
    assert 'ignored' not in query


def test_smart_cdn_url_expiry(credentials):
    before = int(time.time() * 1000)
    url = sign_smart_cdn_url('my-app', 'thumbs', 'in.jpg', credentials)
    after = int(time.time() * 1000)

    exp = int(url.split('exp=')[1].split('&')[0])
    assert before + 3600 * 1000 <= exp <= after + 3600 * 1000


def test_smart_cdn_url_required(credentials):
    with pytest.raises(ValueError):
        sign_smart_cdn_url('', 'thumbs', 'in.jpg', credentials)
    with pytest.raises(ValueError):
        sign_smart_cdn_url('my-app', '', 'in.jpg', credentials)
