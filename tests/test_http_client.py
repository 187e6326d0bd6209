import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from planckblog.http_client import (
    HTTPClientError,
    HTTPRequest,
    HTTPResponse,
    HTTPSession,
)


class _Handler(BaseHTTPRequestHandler):
    def log_message(self, format, *args):
        pass

    def _reply(self, status, body, content_type="text/plain"):
        data = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def do_GET(self):
        if self.path == "/":
            self._reply(200, "aaa")
        elif self.path == "/echo":
            self._reply(200, self.headers.get("X-Test", ""))
        else:
            self._reply(404, "not found")

    def do_POST(self):
        length = int(self.headers.get("Content-Length", "0"))
        body = self.rfile.read(length).decode("utf-8")
        if body == "aaa" and self.headers.get("Content-Type") == "text/plain":
            self._reply(200, "bbb")
        else:
            self._reply(401, "error")


@pytest.fixture
def base_url():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()
        thread.join()


def _closed_port():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def test_can_get(base_url):
    session = HTTPSession(timeout=10)
    res = session.get(f"{base_url}/")
    assert res.payload == b"aaa"
    assert res.payload_as_str() == "aaa"
    assert res.status == 200
    assert res.header["Content-Type"] == "text/plain"


def test_get_http_error_is_a_response(base_url):
    res = HTTPSession(timeout=10).get(f"{base_url}/aaa")
    assert res.status == 404
    assert res.payload_as_str() == "not found"


def test_get_connection_error_raises():
    with pytest.raises(HTTPClientError):
        HTTPSession(timeout=10).get(f"http://127.0.0.1:{_closed_port()}/")


def test_get_invalid_url_raises():
    with pytest.raises(HTTPClientError):
        HTTPSession().get("not a url")


def test_get_sends_headers(base_url):
    req = HTTPRequest(f"{base_url}/echo").add_header("X-Test", "hello")
    res = HTTPSession(timeout=10).get(req)
    assert res.status == 200
    assert res.payload_as_str() == "hello"


def test_can_post(base_url):
    session = HTTPSession(timeout=10)
    res = session.post(
        HTTPRequest(f"{base_url}/").set_payload("aaa").set_content_type("text/plain")
    )
    assert res.status == 200
    assert res.header["Content-Type"] == "text/plain"
    assert res.payload_as_str() == "bbb"


def test_post_rejected(base_url):
    session = HTTPSession(timeout=10)
    res = session.post(
        HTTPRequest(f"{base_url}/")
        .add_header("Content-Type", "text/plain")
        .set_payload("nonono")
    )
    assert res.status == 401
    assert res.header["Content-Type"] == "text/plain"
    assert res.payload_as_str() == "error"


def test_add_header_keeps_first_value():
    req = HTTPRequest("http://example.com/").add_header("A", "1").add_header("A", "2")
    assert req.header == {"A": "1"}


def test_set_content_type_and_payload():
    req = HTTPRequest("http://example.com/").set_content_type("text/plain").set_payload("x")
    assert req.header == {"Content-Type": "text/plain"}
    assert req.request_data == b"x"


def test_requests_compare_equal():
    a = HTTPRequest("http://example.com/").set_payload("p")
    b = HTTPRequest("http://example.com/").set_payload(b"p")
    assert a == b


def test_response_payload_as_str():
    res = HTTPResponse(200, "héllo".encode("utf-8"))
    assert res.payload_as_str() == "héllo"
    assert res.header == {}