import logging

import pytest

from kumitate.definitions.errors import (
        InconsistentResponseError, ValidationError)
from kumitate.rest.validation import check_json, validate_json


def test_validate_status():
    validate_json('AssemblyStatus', {
        'ok': 'ASSEMBLY_EXECUTING', 'assembly_id': 'abc',
        'assembly_url': 'http://x/a', 'bytes_expected': None,
        'uploads': [{'name': 'a.png'}], 'some_new_field': 1})
    validate_json('AssemblyStatus', {'error': 'INVALID_FORM_DATA'})

    with pytest.raises(ValidationError):
        validate_json('AssemblyStatus', {'assembly_id': 'abc'})
    with pytest.raises(ValidationError):
        validate_json('AssemblyStatus', {'ok': 42})
    with pytest.raises(ValidationError):
        validate_json('AssemblyStatus', {'ok': 'X', 'results': []})


def test_validate_list():
    validate_json('ListResponse', {'items': [], 'count': 0})
    validate_json('ListResponse', {'items': [{'id': 'a'}]})

    with pytest.raises(ValidationError):
        validate_json('ListResponse', {'count': 0})
    with pytest.raises(ValidationError):
        validate_json('ListResponse', {'items': [], 'count': -1})


def test_unknown_class():
    with pytest.raises(KeyError):
        validate_json('Template', {})


def test_check_json(caplog):
    with caplog.at_level(logging.WARNING, logger='kumitate'):
        check_json('AssemblyStatus', {'ok': 42})
    assert 'expected schema' in caplog.text

    with pytest.raises(InconsistentResponseError):
        check_json('AssemblyStatus', {'ok': 42}, True)

    check_json('AssemblyStatus', {'ok': 'ASSEMBLY_COMPLETED'}, True)
