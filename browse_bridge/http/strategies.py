"""Request dispatch: pick one execution strategy and run it.

  - GET                          -> full page navigation
  - non-GET to a gateway host    -> context-level fetch (no page script)
  - any other non-GET            -> fetch() evaluated inside the page
"""

import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import urlencode

from patchright.async_api import Error as PlaywrightError

from browse_bridge.core.errors import RedirectLimitError, TransportError
from browse_bridge.core.schemas import FetchResult, RequestSpec, Strategy
from browse_bridge.http.headers import (
    COMMON_HEADER_NAMES,
    ESSENTIAL_HEADER_NAMES,
    FORM_CONTENT_TYPE,
    JSON_CONTENT_TYPE,
    extract_headers,
    get_header,
    parse_body,
)
from browse_bridge.http.scripts import FETCH_SCRIPT

logger = logging.getLogger(__name__)


def _form_value(value: Any) -> Any:
    # Same spellings a browser's URLSearchParams produces.
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (list, tuple)):
        return [_form_value(v) for v in value]
    return value


def serialize_body(body: Any, headers: dict[str, str]) -> str | bytes | None:
    """Serialize *body* according to the declared Content-Type.

    Strings and bytes go out raw. Mappings and lists become a form string
    for urlencoded requests and JSON otherwise; a missing Content-Type is
    then set to JSON on *headers*.
    """
    if body is None:
        return None
    if isinstance(body, (str, bytes)):
        return body

    content_type = get_header(headers, "content-type")
    if FORM_CONTENT_TYPE in content_type.lower():
        items = body.items() if isinstance(body, Mapping) else body
        return urlencode([(k, _form_value(v)) for k, v in items], doseq=True)
    if not content_type:
        headers["Content-Type"] = JSON_CONTENT_TYPE
    return json.dumps(body)


class Dispatcher:
    """Chooses the strategy for a request from its method and host."""

    def __init__(self, gateway_hosts: Iterable[str] = ()) -> None:
        self._gateway_hosts = tuple(h.strip().lower() for h in gateway_hosts if h.strip())

    @property
    def gateway_hosts(self) -> tuple[str, ...]:
        return self._gateway_hosts

    def is_gateway_host(self, hostname: str) -> bool:
        host = hostname.lower()
        return any(entry in host for entry in self._gateway_hosts)

    def select(self, spec: RequestSpec) -> Strategy:
        if spec.method == "GET":
            return Strategy.NAVIGATION
        if self.is_gateway_host(spec.hostname):
            return Strategy.GATEWAY
        return Strategy.SCRIPT


class NavigationStrategy:
    """Loads the URL as a document, waiting for DOMContentLoaded only."""

    async def execute(self, page: Any, spec: RequestSpec) -> Any:
        return await page.goto(spec.url, wait_until="domcontentloaded")

    @staticmethod
    def count_redirects(response: Any) -> int:
        """Length of the redirect chain that led to *response*."""
        if response is None:
            return 0
        count = 0
        request = response.request.redirected_from
        while request is not None:
            count += 1
            request = request.redirected_from
        return count


class ScriptStrategy:
    """Runs fetch() inside the page with the page's cookies and origin."""

    async def execute(self, page: Any, spec: RequestSpec, headers: dict[str, str]) -> FetchResult:
        fetch_headers = dict(headers)
        data = serialize_body(spec.body, fetch_headers)
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")

        raw = await page.evaluate(
            FETCH_SCRIPT,
            {
                "url": spec.url,
                "method": spec.method,
                "headers": fetch_headers,
                "body": data,
                "commonHeaders": list(COMMON_HEADER_NAMES),
                "essentialHeaders": list(ESSENTIAL_HEADER_NAMES),
            },
        )
        return self.to_result(raw)

    @staticmethod
    def to_result(raw: Any) -> FetchResult:
        """Turn the script's plain-object result into a FetchResult."""
        if not isinstance(raw, Mapping):
            return FetchResult(
                strategy=Strategy.SCRIPT, status=0, ok=False,
                body={"error": "Unexpected script result"}, error="Unexpected script result",
            )

        status = int(raw.get("status") or 0)
        ok = bool(raw.get("ok"))
        if status == 0 and not ok:
            error = str(raw.get("error") or "Unknown error")
            return FetchResult(
                strategy=Strategy.SCRIPT, status=0, ok=False,
                body={"error": error}, error=error,
            )

        content_type = str(raw.get("contentType") or "")
        return FetchResult(
            strategy=Strategy.SCRIPT,
            status=status,
            ok=ok,
            headers=extract_headers(raw.get("headerTiers")),
            body=parse_body(str(raw.get("text") or ""), content_type),
            redirected=bool(raw.get("redirected")),
        )


class GatewayStrategy:
    """Sends the request through the context's own HTTP client.

    Page scripts never run, so cross-origin rules and in-page redirects
    don't apply.
    """

    async def execute(
        self,
        context: Any,
        spec: RequestSpec,
        headers: dict[str, str],
        *,
        max_redirects: int | None = None,
    ) -> FetchResult:
        fetch_headers = dict(headers)
        options: dict[str, Any] = {
            "method": spec.method,
            "headers": fetch_headers,
        }
        data = serialize_body(spec.body, fetch_headers)
        if data is not None:
            options["data"] = data
        if max_redirects is not None:
            options["max_redirects"] = max_redirects

        try:
            response = await context.request.fetch(spec.url, **options)
        except PlaywrightError as e:
            # The engine reports an exceeded redirect cap as a plain error.
            if max_redirects is not None and "redirect" in str(e).lower():
                raise RedirectLimitError(max_redirects + 1, max_redirects, 0) from e
            raise TransportError(str(e)) from e

        try:
            status = response.status
            final_url = response.url
            response_headers = dict(response.headers)
            text = await response.text()
        finally:
            await response.dispose()

        content_type = get_header(response_headers, "content-type")
        return FetchResult(
            strategy=Strategy.GATEWAY,
            status=status,
            ok=status < 400,
            headers=response_headers,
            body=parse_body(text, content_type),
            redirected=bool(final_url) and final_url != spec.url,
        )
