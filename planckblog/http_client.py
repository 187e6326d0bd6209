"""A small blocking HTTP client for GET and POST requests."""

from __future__ import annotations

import http.client
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from email.message import Message
from typing import Dict, Optional, Union


class HTTPClientError(RuntimeError):
    """Raised when a request cannot be carried out at all."""


@dataclass
class HTTPRequest:
    """A request: a URL, an optional payload and extra header fields."""

    url: str = ""
    request_data: bytes = b""
    header: Dict[str, str] = field(default_factory=dict)

    def set_payload(self, data: Union[str, bytes]) -> "HTTPRequest":
        """Set the body sent with POST; return self."""
        self.request_data = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        return self

    def add_header(self, key: str, value: str) -> "HTTPRequest":
        """Add a header field unless it is already set; return self."""
        self.header.setdefault(key, value)
        return self

    def set_content_type(self, content_type: str) -> "HTTPRequest":
        """Add a Content-Type header field; return self."""
        return self.add_header("Content-Type", content_type)


@dataclass
class HTTPResponse:
    """A response: status code, raw payload and header fields."""

    status: int = 0
    payload: bytes = b""
    header: Dict[str, str] = field(default_factory=dict)

    def payload_as_str(self) -> str:
        """The payload decoded as UTF-8."""
        return self.payload.decode("utf-8", errors="replace")


class _NoRedirect(urllib.request.HTTPRedirectHandler):
    """Report redirects as responses instead of following them."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        raise urllib.error.HTTPError(req.full_url, code, msg, headers, fp)


def _headers_from(message: Optional[Message]) -> Dict[str, str]:
    header: Dict[str, str] = {}
    if message is None:
        return header
    for key, value in message.items():
        header.setdefault(key, value)
    return header


class HTTPSession:
    """An HTTP client; threads should not share one session.

    HTTP error statuses are returned as responses; only failures to get a
    response at all raise HTTPClientError.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._timeout = timeout
        self._opener = urllib.request.build_opener(_NoRedirect())

    def _perform(self, request: urllib.request.Request) -> HTTPResponse:
        try:
            if self._timeout is None:
                reply = self._opener.open(request)
            else:
                reply = self._opener.open(request, timeout=self._timeout)
        except urllib.error.HTTPError as e:
            try:
                payload = e.read() or b""
            finally:
                e.close()
            return HTTPResponse(e.code, payload, _headers_from(e.headers))
        except urllib.error.URLError as e:
            raise HTTPClientError(str(e.reason)) from e
        except (ValueError, OSError, http.client.HTTPException) as e:
            raise HTTPClientError(str(e)) from e

        with reply:
            try:
                payload = reply.read()
            except (OSError, http.client.HTTPException) as e:
                raise HTTPClientError(str(e)) from e
            return HTTPResponse(reply.status, payload, _headers_from(reply.headers))

    @staticmethod
    def _as_request(request: Union[str, HTTPRequest]) -> HTTPRequest:
        return HTTPRequest(request) if isinstance(request, str) else request

    def get(self, request: Union[str, HTTPRequest]) -> HTTPResponse:
        """Send a GET request to a URL or with an HTTPRequest."""
        req = self._as_request(request)
        return self._perform(
            urllib.request.Request(req.url, headers=dict(req.header), method="GET")
        )

    def post(self, request: HTTPRequest) -> HTTPResponse:
        """Send a POST request carrying the request's payload."""
        req = self._as_request(request)
        headers = dict(req.header)
        if not any(k.lower() == "content-type" for k in headers):
            headers["Content-Type"] = "application/x-www-form-urlencoded"
        return self._perform(
            urllib.request.Request(
                req.url, data=req.request_data, headers=headers, method="POST"
            )
        )