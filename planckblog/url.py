"""A mutable URL made of separately editable parts."""

from __future__ import annotations

import re
from dataclasses import dataclass

_SCHEME_RE = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]*")
_FORBIDDEN_RE = re.compile(r"[\x00-\x20\x7f]")
_USERINFO_SEP = ":"


@dataclass
class URL:
    """A URL whose parts are plain attributes; absent parts are empty."""

    scheme: str = ""
    user: str = ""
    password: str = ""
    host: str = ""
    port: str = ""
    path: str = ""
    query: str = ""
    fragment: str = ""
    zoneid: str = ""

    @classmethod
    def from_str(cls, text: str) -> "URL":
        """Parse an absolute URL; raise ValueError if it is invalid."""
        error = ValueError(f"Invalid URL: {text}")
        if _FORBIDDEN_RE.search(text):
            raise error
        scheme, sep, rest = text.partition("://")
        if not sep or not _SCHEME_RE.fullmatch(scheme):
            raise error
        url = cls(scheme=scheme.lower())

        rest, hash_sep, url.fragment = rest.partition("#")
        rest, _, url.query = rest.partition("?")
        slash = rest.find("/")
        authority, path = (rest, "") if slash < 0 else (rest[:slash], rest[slash:])
        url.path = path or "/"

        userinfo, at, hostport = authority.rpartition("@")
        if at:
            user, _, password = userinfo.partition(_USERINFO_SEP)
            url.user = user
            url.password = password
        else:
            hostport = authority

        if hostport.startswith("["):
            close = hostport.find("]")
            if close < 0:
                raise error
            address = hostport[1:close]
            address, zone_sep, url.zoneid = address.partition("%25")
            if not address or (zone_sep and not url.zoneid):
                raise error
            url.host = f"[{address}]"
            after = hostport[close + 1:]
            if after and not after.startswith(":"):
                raise error
            port = after[1:]
        else:
            host, _, port = hostport.partition(":")
            url.host = host

        if port:
            if not port.isdigit() or int(port) > 65535:
                raise error
            url.port = port
        if not url.host and url.scheme != "file":
            raise error
        return url

    @property
    def valid(self) -> bool:
        """Whether the parts make up a complete URL."""
        return bool(self.scheme) and (bool(self.host) or self.scheme == "file")

    def __str__(self) -> str:
        if not self.valid:
            return ""
        parts = [self.scheme, "://"]
        if self.user or self.password:
            parts.append(self.user)
            if self.password:
                parts.append(_USERINFO_SEP + self.password)
            parts.append("@")
        host = self.host
        if self.zoneid and host.startswith("[") and host.endswith("]"):
            host = f"{host[:-1]}%25{self.zoneid}]"
        parts.append(host)
        if self.port:
            parts.append(":" + self.port)
        path = self.path or "/"
        if not path.startswith("/"):
            path = "/" + path
        parts.append(path)
        if self.query:
            parts.append("?" + self.query)
        if self.fragment:
            parts.append("#" + self.fragment)
        return "".join(parts)

    def append_path(self, segment: str) -> "URL":
        """Append path segments, collapsing slashes at the joint; return self."""
        to_append = segment.lstrip("/")
        if not to_append:
            return self
        self.path = f"{self.path.rstrip('/')}/{to_append}"
        return self