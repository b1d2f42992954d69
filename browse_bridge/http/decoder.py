"""Content-Encoding decoding for raw response bodies."""

import gzip
import logging
import zlib
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import brotli

logger = logging.getLogger(__name__)


def _inflate(data: bytes) -> bytes:
    # Servers send both zlib-wrapped and bare deflate streams.
    try:
        return zlib.decompress(data)
    except zlib.error:
        return zlib.decompress(data, -zlib.MAX_WBITS)


DECODERS: dict[str, Callable[[bytes], bytes]] = {
    "gzip": gzip.decompress,
    "deflate": _inflate,
    "br": brotli.decompress,
}


def collect_body(body: bytes | bytearray | Iterable[bytes]) -> bytes:
    """Join a body given as bytes or as an iterable of byte chunks."""
    if isinstance(body, (bytes, bytearray)):
        return bytes(body)
    return b"".join(body)


def content_encoding(headers: Mapping[str, Any] | None) -> str:
    if not headers:
        return ""
    for key, value in headers.items():
        if key.lower() == "content-encoding":
            return str(value).strip().lower()
    return ""


def decode_body(
    headers: Mapping[str, Any] | None,
    body: bytes | bytearray | Iterable[bytes],
) -> bytes:
    """Decompress *body* when *headers* declare gzip, deflate or br.

    Any other (or missing) encoding passes the bytes through unchanged.
    """
    data = collect_body(body)
    encoding = content_encoding(headers)
    decoder = DECODERS.get(encoding)
    if decoder is None:
        return data
    logger.debug("Decoding %d byte body with %s", len(data), encoding)
    return decoder(data)
