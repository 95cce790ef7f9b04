"""Tests for locating the store JSON in the pool page."""
import pytest

from poolsync.errors import DecodeError
from poolsync.parse.store_payload import extract_store_json, load_store_json


def test_extract_store_json(page_factory, payload_factory):
    """Test the store script content is returned."""
    payload = payload_factory()
    html = page_factory(payload)

    text = extract_store_json(html)
    assert load_store_json(text) == payload


def test_extract_ignores_other_scripts():
    """Test only the script with id=store is picked."""
    html = (
        '<script type="application/json" id="config">{"a": 1}</script>'
        '<script type="application/json" id="store">{"b": 2}</script>'
    )
    assert load_store_json(extract_store_json(html)) == {"b": 2}


def test_extract_missing_store():
    """Test a page without the store script (unknown pool)."""
    with pytest.raises(DecodeError, match="No store script"):
        extract_store_json("<html><body>Pool not found</body></html>")


def test_extract_empty_page():
    """Test empty HTML."""
    with pytest.raises(DecodeError):
        extract_store_json("")


def test_load_invalid_json():
    """Test invalid JSON is a decode error."""
    with pytest.raises(DecodeError, match="not valid JSON"):
        load_store_json("{not json")


def test_load_non_object():
    """Test a JSON array root is rejected."""
    with pytest.raises(DecodeError, match="must be an object"):
        load_store_json("[1, 2]")
