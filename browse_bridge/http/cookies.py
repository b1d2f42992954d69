"""Cookie jar kept alongside the browser session.

The jar is authoritative for the ``Cookie`` header the bridge sends.
Cookies written by in-page JavaScript are only seen when they also come
back as ``set-cookie`` response headers.
"""

import logging
from collections.abc import Mapping
from email.message import Message
from http.cookiejar import Cookie, CookieJar
from typing import Any
from urllib.parse import urlsplit

from requests import Request
from requests.cookies import MockRequest, MockResponse, RequestsCookieJar, get_cookie_header

logger = logging.getLogger(__name__)


def _build_request(url: str) -> Request:
    """A bodiless request the jar can match domain, path and scheme against."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        msg = f"Cannot match cookies for non-absolute URL: {url!r}"
        raise ValueError(msg)
    return Request("GET", url)


def split_set_cookie(value: Any) -> list[str]:
    """Return individual Set-Cookie strings from a scalar or list header.

    The engine joins repeated ``set-cookie`` headers with newlines.
    """
    if value is None:
        return []
    raw = [value] if isinstance(value, str) else list(value)
    values: list[str] = []
    for item in raw:
        values.extend(line.strip() for line in str(item).split("\n") if line.strip())
    return values


class CookieSync:
    """Reads jar cookies into request headers and stores response cookies."""

    def __init__(self, jar: CookieJar | None = None) -> None:
        self._jar = jar if jar is not None else RequestsCookieJar()

    @property
    def jar(self) -> CookieJar:
        return self._jar

    def attach_cookies(self, url: str, headers: dict[str, str]) -> None:
        """Set ``headers["Cookie"]`` from jar cookies matching *url*.

        Leaves *headers* untouched when nothing matches.
        """
        cookie_header = get_cookie_header(self._jar, _build_request(url))
        if cookie_header:
            # Pairs are joined with a bare ";", the way the browser side expects.
            cookie_header = ";".join(p.strip() for p in cookie_header.split(";") if p.strip())
            for key in [k for k in headers if k.lower() == "cookie"]:
                del headers[key]
            headers["Cookie"] = cookie_header

    def absorb_cookies(self, url: str, response_headers: Mapping[str, Any] | None) -> int:
        """Store every ``set-cookie`` value from *response_headers* against *url*.

        Returns the number of Set-Cookie values seen.
        """
        if not response_headers:
            return 0
        raw = None
        for key, value in response_headers.items():
            if key.lower() == "set-cookie":
                raw = value
                break
        values = split_set_cookie(raw)
        if not values:
            return 0

        message = Message()
        for value in values:
            message["Set-Cookie"] = value
        request = MockRequest(_build_request(url))
        self._jar.extract_cookies(MockResponse(message), request)  # type: ignore[arg-type]
        logger.debug("Absorbed %d set-cookie value(s) from %s", len(values), url)
        return len(values)

    def cookies(self) -> list[Cookie]:
        """Snapshot of every cookie currently in the jar."""
        return list(self._jar)

    def clear(self) -> None:
        self._jar.clear()
