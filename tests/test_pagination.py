from unittest.mock import MagicMock

from kumitate.components.pagination import paginate


def test_paginate_by_count():
    pages = {
            1: {'items': [1, 2], 'count': 5},
            2: {'items': [3, 4], 'count': 5},
            3: {'items': [5], 'count': 5}}
    fetch_page = MagicMock(side_effect=lambda page: pages[page])

    assert list(paginate(fetch_page)) == [1, 2, 3, 4, 5]
    assert fetch_page.call_count == 3


def test_paginate_until_empty():
    pages = {1: {'items': ['a']}, 2: {'items': ['b']}, 3: {'items': []}}
    fetch_page = MagicMock(side_effect=lambda page: pages[page])

    assert list(paginate(fetch_page)) == ['a', 'b']
    assert fetch_page.call_count == 3


def test_paginate_empty_listing():
    fetch_page = MagicMock(return_value={'items': [], 'count': 0})
    assert list(paginate(fetch_page)) == []
    fetch_page.assert_called_once_with(1)


def test_paginate_is_lazy():
    fetch_page = MagicMock(return_value={'items': [1, 2], 'count': 10})
    items = paginate(fetch_page)
    fetch_page.assert_not_called()
    assert next(items) == 1
    assert next(items) == 2
    assert fetch_page.call_count == 1
    assert next(items) == 1
    fetch_page.assert_called_with(2)
