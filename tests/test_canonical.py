"""Unit tests for canonical JSON helpers."""

from screenops.utils.canonical import canonical_json, same_document


def test_canonical_json_sorts_keys():
    """Canonical JSON sorts keys."""
    obj = {"b": 1, "a": 2}
    assert canonical_json(obj) == '{"a":2,"b":1}'


def test_canonical_json_integral_floats():
    """Integral floats serialize like ints."""
    assert canonical_json({"steps": 5.0}) == canonical_json({"steps": 5})


def test_same_document_ignores_key_order():
    """Criteria documents compare by content."""
    assert same_document(
        {"condition_type": "equals", "condition_value": "yes"},
        {"condition_value": "yes", "condition_type": "equals"},
    )
    assert not same_document({"condition_value": "yes"}, {"condition_value": "no"})


def test_same_document_none():
    """Missing criteria equal each other but not an empty rule."""
    assert same_document(None, None)
    assert not same_document(None, {})
