"""Locate and parse the JSON store embedded in the pool page."""
import logging
from typing import Any

import orjson
from selectolax.parser import HTMLParser

from poolsync.errors import DecodeError

logger = logging.getLogger(__name__)

# <script type="application/json" id="store">
STORE_SELECTOR = 'script[id="store"]'


def extract_store_json(html_content: str) -> str:
    """Return the text of the store script element."""
    if not html_content:
        raise DecodeError("Empty pool page")

    parser = HTMLParser(html_content)
    node = parser.css_first(STORE_SELECTOR)
    if node is None:
        raise DecodeError("No store script found in pool page (does the pool exist?)")

    text = node.text(deep=True, strip=True)
    if not text:
        raise DecodeError("Store script is empty")
    return text


def load_store_json(text: str) -> dict[str, Any]:
    """Parse store JSON text into a dict."""
    try:
        data = orjson.loads(text)
    except orjson.JSONDecodeError as e:
        raise DecodeError(f"Store payload is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise DecodeError(f"Store payload must be an object, got {type(data).__name__}")
    return data
