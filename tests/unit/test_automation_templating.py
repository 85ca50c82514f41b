"""Unit tests for payload lookup and placeholder interpolation."""

import pytest

from ruleflow.core.automation.templating import interpolate, lookup_path, render_template


def test_lookup_path_nested():
    payload = {"customer": {"address": {"city": "Lyon"}}}
    assert lookup_path(payload, "customer.address.city") == "Lyon"


def test_lookup_path_list_index():
    payload = {"items": [{"sku": "A-1"}, {"sku": "B-2"}]}
    assert lookup_path(payload, "items.1.sku") == "B-2"
    assert lookup_path(payload, "items.5.sku", default=None) is None


def test_lookup_path_missing_raises_without_default():
    with pytest.raises(KeyError):
        lookup_path({"a": 1}, "b")


def test_render_template():
    rendered = render_template("Order {{orderId}} placed by {{ customer.name }}", {
        "orderId": "X123",
        "customer": {"name": "Ada"},
    })
    assert rendered == "Order X123 placed by Ada"


def test_render_template_missing_value_is_empty():
    assert render_template("Hello {{name}}!", {}) == "Hello !"


def test_interpolate_walks_nested_config():
    config = {
        "title": "Order {{orderId}}",
        "headers": {"X-Order": "{{orderId}}"},
        "tags": ["{{status}}", 3],
        "retries": 2,
    }
    result = interpolate(config, {"orderId": "X1", "status": "paid"})
    assert result == {
        "title": "Order X1",
        "headers": {"X-Order": "X1"},
        "tags": ["paid", 3],
        "retries": 2,
    }
