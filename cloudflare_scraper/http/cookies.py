"""Cookie jar shared by the initial and answer requests.

Implements the parts of RFC 6265 that matter for challenge clearance:
domain and host-only matching, path matching, Secure, and expiry. All
jar operations hold a lock so one jar can back concurrent calls.
"""

import email.utils
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple
from urllib.parse import urlsplit

from .models import Request, Response


@dataclass
class Cookie:
    """Represents an HTTP cookie."""
    name: str
    value: str
    domain: str
    path: str = "/"
    expires: Optional[float] = None  # Unix timestamp
    secure: bool = False
    http_only: bool = False
    host_only: bool = True
    same_site: Optional[str] = None
    created: float = field(default_factory=time.time)

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires is None:
            return False
        return (now if now is not None else time.time()) >= self.expires

    @property
    def is_session_cookie(self) -> bool:
        """Check if cookie is a session cookie (no expiry)."""
        return self.expires is None

    def matches_domain(self, host: str) -> bool:
        host = host.lower()
        if self.host_only:
            return host == self.domain
        return host == self.domain or host.endswith("." + self.domain)

    def matches_path(self, path: str) -> bool:
        """Check if cookie matches path."""
        if path == self.path:
            return True
        if path.startswith(self.path):
            # Cookie path /foo matches /foo/bar but not /foobar
            return self.path.endswith("/") or path[len(self.path)] == "/"
        return False

    def to_header_value(self) -> str:
        return f"{self.name}={self.value}"


def _default_path(request_path: str) -> str:
    """Calculate default path for cookie."""
    if not request_path or not request_path.startswith("/"):
        return "/"
    last_slash = request_path.rfind("/")
    if last_slash == 0:
        return "/"
    return request_path[:last_slash]


def _parse_expires(value: str) -> Optional[float]:
    try:
        return email.utils.parsedate_to_datetime(value).timestamp()
    except (TypeError, ValueError, IndexError, OverflowError):
        return None


def parse_set_cookie(header: str, url: str, now: Optional[float] = None) -> Optional[Cookie]:
    """Parse a single Set-Cookie header value received from url.

    Returns None for malformed headers and for cookies whose Domain
    attribute does not domain-match the request host.
    """
    now = now if now is not None else time.time()
    parts = [part.strip() for part in header.split(";")]
    if not parts or "=" not in parts[0]:
        return None

    name, value = parts[0].split("=", 1)
    name = name.strip()
    if not name:
        return None

    parsed = urlsplit(url)
    host = (parsed.hostname or "").lower()
    cookie = Cookie(
        name=name,
        value=value.strip().strip('"'),
        domain=host,
        path=_default_path(parsed.path),
        created=now,
    )

    max_age: Optional[int] = None
    for part in parts[1:]:
        attr_name, _, attr_value = part.partition("=")
        attr_name = attr_name.strip().lower()
        attr_value = attr_value.strip()

        if attr_name == "domain" and attr_value:
            domain = attr_value.lstrip(".").lower()
            if host != domain and not host.endswith("." + domain):
                return None
            cookie.domain = domain
            cookie.host_only = False
        elif attr_name == "path" and attr_value.startswith("/"):
            cookie.path = attr_value
        elif attr_name == "expires":
            cookie.expires = _parse_expires(attr_value)
        elif attr_name == "max-age":
            try:
                max_age = int(attr_value)
            except ValueError:
                pass
        elif attr_name == "secure":
            cookie.secure = True
        elif attr_name == "httponly":
            cookie.http_only = True
        elif attr_name == "samesite":
            cookie.same_site = attr_value

    # Max-Age wins over Expires
    if max_age is not None:
        cookie.expires = now + max_age if max_age > 0 else now

    return cookie


class CookieJar:
    """Thread-safe cookie store keyed by (domain, path, name)."""

    def __init__(self):
        self._cookies: Dict[Tuple[str, str, str], Cookie] = {}
        self._lock = threading.RLock()

    def set_cookie(self, cookie: Cookie) -> None:
        """Store a cookie, or remove the stored one if it has already expired."""
        key = (cookie.domain, cookie.path, cookie.name)
        with self._lock:
            if cookie.is_expired():
                self._cookies.pop(key, None)
                return
            existing = self._cookies.get(key)
            if existing is not None:
                cookie.created = existing.created
            self._cookies[key] = cookie

    def extract_cookies(self, response: Response) -> int:
        """Store every Set-Cookie of a response. Returns the number stored."""
        stored = 0
        url = response.url or response.request.url
        for header in response.headers.get_all("Set-Cookie"):
            cookie = parse_set_cookie(header, url)
            if cookie is None:
                continue
            self.set_cookie(cookie)
            stored += 1
        return stored

    def get_cookies(self, url: str) -> List[Cookie]:
        """Cookies that should be sent to url, most specific path first."""
        parsed = urlsplit(url)
        host = (parsed.hostname or "").lower()
        path = parsed.path or "/"
        is_secure = parsed.scheme == "https"
        now = time.time()

        with self._lock:
            matching = [
                cookie for cookie in self._cookies.values()
                if not cookie.is_expired(now)
                and cookie.matches_domain(host)
                and cookie.matches_path(path)
                and (is_secure or not cookie.secure)
            ]

        matching.sort(key=lambda c: (-len(c.path), c.created))
        return matching

    def cookie_header(self, url: str) -> Optional[str]:
        """Get Cookie header value for URL."""
        cookies = self.get_cookies(url)
        if not cookies:
            return None
        return "; ".join(cookie.to_header_value() for cookie in cookies)

    def add_cookie_header(self, request: Request) -> Request:
        """Return a copy of request carrying the jar's cookies.

        A Cookie header set by the caller is left untouched.
        """
        if "Cookie" in request.headers:
            return request
        header = self.cookie_header(request.url)
        if header is None:
            return request
        prepared = request.copy()
        prepared.headers["Cookie"] = header
        return prepared

    def get(self, name: str, domain: Optional[str] = None) -> Optional[str]:
        """Value of the first unexpired cookie called name, optionally on domain."""
        with self._lock:
            for cookie in self._cookies.values():
                if cookie.name != name or cookie.is_expired():
                    continue
                if domain is None or cookie.domain == domain.lower().lstrip("."):
                    return cookie.value
        return None

    def clear_expired(self) -> int:
        """Remove expired cookies and return count removed."""
        now = time.time()
        with self._lock:
            expired = [key for key, cookie in self._cookies.items() if cookie.is_expired(now)]
            for key in expired:
                del self._cookies[key]
        return len(expired)

    def clear(self, domain: Optional[str] = None) -> None:
        with self._lock:
            if domain is None:
                self._cookies.clear()
                return
            domain = domain.lower().lstrip(".")
            for key in [key for key in self._cookies if key[0] == domain]:
                del self._cookies[key]

    def __iter__(self) -> Iterator[Cookie]:
        with self._lock:
            snapshot = list(self._cookies.values())
        return iter(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cookies)

    def __repr__(self) -> str:
        return f"<CookieJar[{len(self)} cookies]>"
