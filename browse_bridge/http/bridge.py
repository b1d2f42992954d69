"""RequestBridge: HTTP-style requests executed through a real browser.

Pipeline per request:
  ensure session -> attach jar cookies -> dispatch -> normalize
  -> absorb set-cookie -> raise on status >= 400

One request at a time per bridge; the page and jar are not shared.
"""

import logging
from collections.abc import Iterable, Mapping
from http.cookiejar import CookieJar
from types import TracebackType
from typing import Any

from browse_bridge.browser.session import BrowserSession
from browse_bridge.core.config import Settings
from browse_bridge.core.errors import RedirectLimitError, StatusCodeError
from browse_bridge.core.schemas import FetchResult, RequestSpec, ResponseEnvelope, Strategy
from browse_bridge.http.cookies import CookieSync
from browse_bridge.http.decoder import decode_body
from browse_bridge.http.headers import clean_request_headers
from browse_bridge.http.normalizer import normalize_fetch_result, normalize_navigation
from browse_bridge.http.strategies import (
    Dispatcher,
    GatewayStrategy,
    NavigationStrategy,
    ScriptStrategy,
)

logger = logging.getLogger(__name__)


def _preview(body: Any, limit: int) -> Any:
    if isinstance(body, str) and len(body) > limit:
        return body[:limit] + "..."
    return body


class RequestBridge:
    """Sends requests through one long-lived browser page.

    Usage::

        async with RequestBridge(settings) as bridge:
            resp = await bridge.request("https://example.com/api", method="POST",
                                        body={"a": 1})
            print(resp.status_code, resp.body)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        max_redirections: int | None = None,
        gateway_hosts: Iterable[str] | None = None,
        session: BrowserSession | None = None,
        jar: CookieJar | None = None,
    ) -> None:
        self._settings = settings or Settings()
        bridge_config = self._settings.bridge

        self.max_redirections = (
            bridge_config.max_redirections if max_redirections is None else max_redirections
        )
        self.redirect_count = 0
        self._log_body_chars = bridge_config.log_body_chars

        self._session = session or BrowserSession(self._settings.browser)
        self._cookies = CookieSync(jar)
        self._dispatcher = Dispatcher(
            bridge_config.gateway_hosts if gateway_hosts is None else gateway_hosts,
        )
        self._navigation = NavigationStrategy()
        self._script = ScriptStrategy()
        self._gateway = GatewayStrategy()

    @property
    def session(self) -> BrowserSession:
        return self._session

    @property
    def cookies(self) -> CookieSync:
        return self._cookies

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    async def request(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        body: Any = None,
    ) -> ResponseEnvelope:
        """Execute one request and return its envelope.

        Raises:
            StatusCodeError: Response status >= 400.
            TransportError: The fetch failed before any status.
            RedirectLimitError: More than ``max_redirections`` redirects.
        """
        spec = RequestSpec(url=url, method=method, headers=dict(headers or {}), body=body)
        await self._session.start()

        outgoing = clean_request_headers(spec.headers)
        self._cookies.attach_cookies(spec.url, outgoing)
        await self._session.page.set_extra_http_headers(outgoing)

        strategy = self._dispatcher.select(spec)
        logger.debug("%s %s via %s strategy", spec.method, spec.url, strategy.value)

        if strategy is Strategy.NAVIGATION:
            response = await self._navigation.execute(self._session.page, spec)
            self.redirect_count = self._navigation.count_redirects(response)
            envelope = await normalize_navigation(response, self._session.page)
        else:
            if strategy is Strategy.GATEWAY:
                try:
                    result = await self._gateway.execute(
                        self._session.context, spec, outgoing,
                        max_redirects=self.max_redirections,
                    )
                except RedirectLimitError as e:
                    self.redirect_count = e.redirects
                    raise
            else:
                result = await self._script.execute(self._session.page, spec, outgoing)
            self.redirect_count = 1 if result.redirected else 0
            envelope = normalize_fetch_result(result)

        self._cookies.absorb_cookies(spec.url, envelope.headers)

        logger.debug("Response status: %d", envelope.status_code)
        logger.debug("Response headers: %s", envelope.headers)
        logger.debug("Response body: %s", _preview(envelope.body, self._log_body_chars))

        if self.redirect_count > self.max_redirections:
            raise RedirectLimitError(
                self.redirect_count, self.max_redirections, envelope.status_code,
            )
        if envelope.status_code >= 400:
            msg = f"Request failed with status code {envelope.status_code}"
            raise StatusCodeError(msg, envelope.status_code, envelope)
        return envelope

    async def handle_payment_navigation(
        self,
        url: str,
        *,
        method: str = "POST",
        headers: Mapping[str, str] | None = None,
        body: Any = None,
    ) -> FetchResult:
        """Send a request through the context-level fetch and return its result.

        Used for payment gateway hosts; no status check is applied here.
        """
        spec = RequestSpec(url=url, method=method, headers=dict(headers or {}), body=body)
        await self._session.start()
        return await self._gateway.execute(
            self._session.context, spec, clean_request_headers(spec.headers),
            max_redirects=self.max_redirections,
        )

    @staticmethod
    def handle_body(headers: Mapping[str, Any] | None, body: Any) -> bytes:
        """Decode a raw body stream according to its Content-Encoding."""
        return decode_body(headers, body)

    async def close_browser(self) -> None:
        await self._session.close()

    async def __aenter__(self) -> "RequestBridge":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close_browser()
