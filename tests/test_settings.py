from pathlib import Path

import pytest
import yatiml

from kumitate.components.settings import ClientConfiguration, load_settings
from kumitate.definitions.assemblies import Credentials
from kumitate.rest.transport import DEFAULT_ENDPOINT


def test_load_minimal():
    settings = load_settings(
            'credentials:\n'
            '  key: my-key\n'
            '  secret: my-secret\n')

    assert settings.credentials.key == 'my-key'
    assert settings.credentials.secret == 'my-secret'
    assert settings.endpoint == DEFAULT_ENDPOINT
    assert settings.max_refresh == 600
    assert settings.refresh_delay == 1.0
    assert settings.signature_algorithm == 'sha384'
    assert settings.validate_responses is False
    assert settings.trust_store_path() is None
    assert settings.loglevel == 'info'


def test_load_full(tmp_path):
    config_file = tmp_path / 'kumitate.conf'
    config_file.write_text(
            'credentials:\n'
            '  key: my-key\n'
            '  secret: my-secret\n'
            'endpoint: https://api.example.com/\n'
            'max_refresh: 20\n'
            'refresh_delay: 0.5\n'
            'signature_algorithm: sha1\n'
            'timeout: 30.0\n'
            'max_retries: 2\n'
            'validate_responses: true\n'
            'trust_store: /etc/ssl/ca.pem\n'
            'loglevel: DEBUG\n')

    settings = load_settings(config_file)

    assert settings.endpoint == 'https://api.example.com'
    assert settings.max_refresh == 20
    assert settings.refresh_delay == 0.5
    assert settings.signature_algorithm == 'sha1'
    assert settings.timeout == 30.0
    assert settings.max_retries == 2
    assert settings.validate_responses is True
    assert settings.trust_store_path() == Path('/etc/ssl/ca.pem')
    assert settings.loglevel == 'debug'


def test_load_invalid():
    with pytest.raises(yatiml.RecognitionError):
        load_settings(
                'credentials:\n'
                '  key: my-key\n'
                '  secret: my-secret\n'
                'max_refresh: lots\n')


def test_invalid_values():
    credentials = Credentials('key', 'secret')
    with pytest.raises(ValueError):
        ClientConfiguration(credentials, signature_algorithm='md5')
    with pytest.raises(ValueError):
        ClientConfiguration(credentials, loglevel='verbose')
    with pytest.raises(ValueError):
        ClientConfiguration(credentials, refresh_delay=-1.0)


def test_credentials():
    credentials = Credentials('key', 'secret')
    assert 'secret' not in repr(credentials)
    with pytest.raises(ValueError):
        Credentials('', 'secret')
    with pytest.raises(ValueError):
        Credentials('key', '')
