"""Convert strategy-specific results into a ResponseEnvelope.

Navigation results carry a live page (DOM access); fetch results are
already plain data. Each has its own normalizer; neither leaks into the
envelope.
"""

import html
import json
import logging
import re
from collections.abc import Mapping
from typing import Any

from browse_bridge.core.errors import TransportError
from browse_bridge.core.schemas import FetchResult, ResponseEnvelope
from browse_bridge.http.headers import get_header, is_json_content_type
from browse_bridge.http.scripts import BODY_TEXT_SCRIPT

logger = logging.getLogger(__name__)

# Browsers render raw JSON documents inside a <pre> element.
_PRE_BLOCK = re.compile(r"<pre[^>]*>([^<]+)</pre>", re.IGNORECASE)


def _string_headers(headers: Any) -> dict[str, str]:
    if not isinstance(headers, Mapping):
        return {}
    return {str(k).lower(): str(v) for k, v in headers.items()}


def json_from_markup(markup: str) -> Any:
    """Return the JSON value inside the first <pre> block, or None."""
    match = _PRE_BLOCK.search(markup)
    if match is None:
        return None
    try:
        return json.loads(html.unescape(match.group(1)))
    except ValueError:
        return None


async def _json_document_body(page: Any) -> Any:
    markup = await page.content()
    data = json_from_markup(markup)
    if data is not None:
        return data

    text = await page.evaluate(BODY_TEXT_SCRIPT)
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        logger.debug("JSON document did not parse; returning text content")
        return text


async def normalize_navigation(response: Any, page: Any) -> ResponseEnvelope:
    """Envelope for a page navigation.

    ``response`` is None when the engine reports no network response
    (same-document navigation); the current markup is returned as 200.
    """
    if response is None:
        return ResponseEnvelope(status_code=200, headers={}, body=await page.content())

    status = response.status
    headers = _string_headers(await response.all_headers())

    if is_json_content_type(get_header(headers, "content-type")):
        body = await _json_document_body(page)
    else:
        body = await page.content()
    return ResponseEnvelope(status_code=status, headers=headers, body=body)


def normalize_fetch_result(result: FetchResult) -> ResponseEnvelope:
    """Envelope for a script-context or gateway fetch.

    Raises:
        TransportError: The attempt never got an HTTP status.
    """
    if not result.ok and result.status == 0:
        detail = result.error
        if detail is None and isinstance(result.body, Mapping):
            detail = result.body.get("error")
        raise TransportError(str(detail or "Unknown error"))

    return ResponseEnvelope(
        status_code=result.status,
        headers=_string_headers(result.headers),
        body=result.body,
    )
