"""Header helpers: cleaning outgoing headers and tiered response extraction.

Response headers captured inside the page come back as a ``tiers`` object
with one slot per extraction method. ``extract_headers`` walks
``HEADER_EXTRACTORS`` in order and the first extractor that yields a
mapping wins.
"""

import json
import logging
from collections.abc import Callable, Mapping
from typing import Any

logger = logging.getLogger(__name__)

# Recomputed by the transport; never forwarded.
TRANSPORT_OWNED_HEADERS = frozenset({"host", "content-length"})

# Tier 2: names looked up one by one when the Headers object isn't iterable.
COMMON_HEADER_NAMES: tuple[str, ...] = (
    "content-type",
    "content-length",
    "set-cookie",
    "csrf-token",
    "authorization",
    "cache-control",
    "expires",
    "location",
)

# Tier 3: the bare minimum callers rely on.
ESSENTIAL_HEADER_NAMES: tuple[str, ...] = ("content-type", "csrf-token")

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def get_header(headers: Mapping[str, Any] | None, name: str, default: str = "") -> str:
    """Case-insensitive header lookup."""
    if not headers:
        return default
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return str(value)
    return default


def clean_request_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy *headers* without the ones the transport computes itself."""
    return {k: v for k, v in headers.items() if k.lower() not in TRANSPORT_OWNED_HEADERS}


def is_json_content_type(content_type: str) -> bool:
    return JSON_CONTENT_TYPE in content_type.lower()


def parse_body(text: str, content_type: str) -> Any:
    """Parse *text* as JSON only for JSON content types; otherwise keep text."""
    if not is_json_content_type(content_type):
        return text
    try:
        return json.loads(text)
    except ValueError:
        logger.debug("Body declared JSON but did not parse; keeping text")
        return text


def _from_entries(tiers: Mapping[str, Any]) -> dict[str, str] | None:
    entries = tiers.get("entries")
    if not isinstance(entries, list):
        return None
    headers: dict[str, str] = {}
    for entry in entries:
        if isinstance(entry, (list, tuple)) and len(entry) == 2:
            key, value = entry
            key = str(key).lower()
            # Headers.forEach may repeat set-cookie; keep every value.
            if key in headers and key == "set-cookie":
                headers[key] = f"{headers[key]}\n{value}"
            else:
                headers[key] = str(value)
    return headers


def _from_named(slot: str) -> Callable[[Mapping[str, Any]], dict[str, str] | None]:
    def extract(tiers: Mapping[str, Any]) -> dict[str, str] | None:
        found = tiers.get(slot)
        if not isinstance(found, Mapping):
            return None
        return {str(k).lower(): str(v) for k, v in found.items() if v}

    extract.__name__ = f"_from_{slot}"
    return extract


HEADER_EXTRACTORS: tuple[tuple[str, Callable[[Mapping[str, Any]], dict[str, str] | None]], ...] = (
    ("entries", _from_entries),
    ("common", _from_named("common")),
    ("essential", _from_named("essential")),
)


def extract_headers(tiers: Any) -> dict[str, str]:
    """Pick headers from the first tier that produced a mapping.

    Never raises: an unusable payload gives an empty mapping.
    """
    if not isinstance(tiers, Mapping):
        logger.warning("No header tiers captured; returning empty headers")
        return {}
    for name, extractor in HEADER_EXTRACTORS:
        headers = extractor(tiers)
        if headers is not None:
            if name != "entries":
                logger.warning("Header extraction degraded to '%s' tier", name)
            return headers
    logger.warning("All header extraction tiers failed; returning empty headers")
    return {}
