import pytest

from kumitate.components.status import classify, StatusKind


@pytest.mark.parametrize('body,kind', [
    ({'ok': 'ASSEMBLY_COMPLETED'}, StatusKind.SUCCESS),
    ({'ok': 'ASSEMBLY_CANCELED'}, StatusKind.TERMINAL_NONERROR),
    ({'ok': 'REQUEST_ABORTED'}, StatusKind.TERMINAL_NONERROR),
    ({'ok': 'ASSEMBLY_EXECUTING'}, StatusKind.NONTERMINAL),
    ({'ok': 'ASSEMBLY_UPLOADING'}, StatusKind.NONTERMINAL),
    ({'ok': 'SOMETHING_NEW'}, StatusKind.NONTERMINAL),
    ({}, StatusKind.NONTERMINAL),
    ({'ok': ['ASSEMBLY_CANCELED']}, StatusKind.NONTERMINAL),
    ({'error': 'INVALID_FORM_DATA'}, StatusKind.ERROR),
    ({'error': 'ASSEMBLY_CRASHED', 'ok': 'ASSEMBLY_COMPLETED'},
     StatusKind.ERROR),
    ({'error': '', 'ok': 'ASSEMBLY_COMPLETED'}, StatusKind.SUCCESS),
    ({'error': None, 'ok': 'ASSEMBLY_EXECUTING'}, StatusKind.NONTERMINAL),
    ])
def test_classify(body, kind):
    classification = classify(body)
    assert classification.kind is kind
    assert classification.payload is body


def test_terminal_kinds():
    assert StatusKind.ERROR.is_terminal()
    assert StatusKind.SUCCESS.is_terminal()
    assert StatusKind.TERMINAL_NONERROR.is_terminal()
    assert not StatusKind.NONTERMINAL.is_terminal()
