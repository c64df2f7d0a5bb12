"""A small HTTP client bound to the base address of a query server."""

from __future__ import annotations

import posixpath
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

DEFAULT_TIMEOUT = 30.0

_PATH_SAFE = "/$&+,:;=@"


@dataclass(frozen=True)
class Response:
    """An HTTP response with its body fully read."""

    status_code: int
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)


Transport = Callable[[str, str, "float | None"], Response]


def _urllib_transport(method: str, url: str, timeout: float | None) -> Response:
    """Perform a request with urllib; proxies come from the environment."""
    request = urllib.request.Request(url, method=method)
    try:
        with urllib.request.urlopen(request, timeout=timeout) as resp:
            return Response(resp.status, resp.read(), dict(resp.headers.items()))
    except urllib.error.HTTPError as exc:
        with exc:
            headers = dict(exc.headers.items()) if exc.headers is not None else {}
            return Response(exc.code, exc.read(), headers)


DEFAULT_TRANSPORT: Transport = _urllib_transport


def _join_path(*parts: str) -> str:
    joined = "/".join(part for part in parts if part)
    if not joined:
        return ""
    cleaned = posixpath.normpath(joined)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


class Client:
    """Builds endpoint URLs below a base address and performs requests.

    Safe to share between threads.
    """

    def __init__(self, address: str, transport: Transport | None = None) -> None:
        parts = urllib.parse.urlsplit(address)
        self.endpoint = parts._replace(path=parts.path.rstrip("/"))
        self.transport: Transport = transport if transport is not None else DEFAULT_TRANSPORT

    def url(self, ep: str, args: Mapping[str, str] | None = None) -> str:
        """Return the URL of endpoint ``ep`` with ``:name`` placeholders filled in."""
        path = _join_path(self.endpoint.path, ep)
        for arg, value in (args or {}).items():
            path = path.replace(":" + arg, value)
        path = urllib.parse.quote(path, safe=_PATH_SAFE)
        if self.endpoint.netloc and path and not path.startswith("/"):
            path = "/" + path
        return urllib.parse.urlunsplit(self.endpoint._replace(path=path))

    def do(self, method: str, url: str, timeout: float | None = None) -> Response:
        """Send a request and return the response with its whole body."""
        return self.transport(method, url, DEFAULT_TIMEOUT if timeout is None else timeout)