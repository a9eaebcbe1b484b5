"""
Module: test_paths.py
Description: Unit tests for dot-notation path helpers.
"""

from hookrelay.transform.paths import (
    MAX_FLATTEN_DEPTH,
    MISSING,
    flatten,
    get_value_by_path,
    set_value_by_path
)


def _rebuild(flat):
    result = {}
    for path, value in flat.items():
        set_value_by_path(result, path, value)
    return result


class TestFlatten:
    """Test cases for flatten()."""

    def test_nested_dicts_and_lists(self):
        document = {
            'order': {'id': 7, 'items': [{'sku': 'A'}, {'sku': 'B'}]},
            'tags': ['x', 'y'],
        }

        assert flatten(document) == {
            'order.id': 7,
            'order.items.0.sku': 'A',
            'order.items.1.sku': 'B',
            'tags.0': 'x',
            'tags.1': 'y',
        }

    def test_empty_containers_are_leaves(self):
        assert flatten({'meta': {}, 'roles': [], 'name': None}) == {
            'meta': {},
            'roles': [],
            'name': None,
        }

    def test_depth_cap_keeps_subtree_verbatim(self):
        document = current = {}
        for level in range(MAX_FLATTEN_DEPTH + 3):
            current[f"l{level}"] = {}
            current = current[f"l{level}"]
        current['leaf'] = 1

        flat = flatten(document)

        assert len(flat) == 1
        (path, value), = flat.items()
        assert path.count('.') == MAX_FLATTEN_DEPTH
        assert isinstance(value, dict)
        assert get_value_by_path(document, path) == value


class TestGetValueByPath:
    """Test cases for get_value_by_path()."""

    def test_resolves_dicts_and_list_indices(self):
        document = {'a': {'b': [10, {'c': 'deep'}]}}

        assert get_value_by_path(document, 'a.b.0') == 10
        assert get_value_by_path(document, 'a.b.1.c') == 'deep'

    def test_missing_paths(self):
        document = {'a': {'b': [10]}}

        assert get_value_by_path(document, 'a.x') is MISSING
        assert get_value_by_path(document, 'a.b.5') is MISSING
        assert get_value_by_path(document, 'a.b.0.c') is MISSING

    def test_explicit_null_is_present(self):
        assert get_value_by_path({'a': None}, 'a') is None


class TestSetValueByPath:
    """Test cases for set_value_by_path()."""

    def test_creates_dicts_and_lists(self):
        result = set_value_by_path({}, 'customer.emails.0', 'a@example.com')

        assert result == {'customer': {'emails': ['a@example.com']}}

    def test_appends_to_lists(self):
        result = set_value_by_path({'items': ['a']}, 'items.1', 'b')

        assert result == {'items': ['a', 'b']}

    def test_sparse_index_becomes_dict(self):
        """Writing past the end of a list never invents None elements."""
        result = set_value_by_path({}, 'items.2', 'c')

        assert result == {'items': {'2': 'c'}}
        assert flatten(result) == {'items.2': 'c'}

    def test_sparse_index_on_existing_list(self):
        result = set_value_by_path({'items': ['a']}, 'items.3.sku', 'X')

        assert result == {'items': {'0': 'a', '3': {'sku': 'X'}}}

    def test_non_canonical_digits_are_keys(self):
        assert set_value_by_path({}, 'codes.01', 'x') == {'codes': {'01': 'x'}}
        assert get_value_by_path({'codes': ['x', 'y']}, 'codes.01') is MISSING

    def test_replaces_scalars_in_the_way(self):
        result = set_value_by_path({'a': 1}, 'a.b', 2)

        assert result == {'a': {'b': 2}}

    def test_named_key_on_list_becomes_dict(self):
        result = set_value_by_path({'a': ['x']}, 'a.name', 'y')

        assert result == {'a': {'0': 'x', 'name': 'y'}}

    def test_round_trip(self):
        """flatten -> rebuild preserves every (path, value) pair."""
        document = {
            'event': {'id': 'e-1', 'version': '1.0'},
            'args': [42, {'role': 'editor'}, [], None],
            'site': {'url': 'https://site.example'},
            'flags': {'a': True, 'b': False},
            'amount': 12.5,
        }

        rebuilt = _rebuild(flatten(document))

        assert flatten(rebuilt) == flatten(document)
        assert rebuilt == document

    def test_round_trip_with_numeric_dict_keys(self):
        document = {'stock': {'2': 'c', '5': 'f'}, 'codes': {'01': 'x'}}

        assert flatten(_rebuild(flatten(document))) == flatten(document)
