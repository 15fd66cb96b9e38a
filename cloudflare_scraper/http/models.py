"""Request and response models passed between the transport and executors.

Executors buffer the whole response body, so `Response.content` can be read
any number of times.
"""

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Mapping, MutableMapping, Optional, Tuple, Union
from urllib.parse import urlsplit


HeaderInput = Union["Headers", Mapping[str, str], Iterable[Tuple[str, str]], None]

REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})


class Headers(MutableMapping):
    """Ordered, case-insensitive, multi-valued HTTP header mapping.

    Item access returns the first value for a name; `get_all` returns every
    value, which matters for repeated Set-Cookie headers.
    """

    def __init__(self, headers: HeaderInput = None):
        self._items: List[Tuple[str, str]] = []
        if headers is None:
            return
        if isinstance(headers, Headers):
            self._items = list(headers._items)
        elif isinstance(headers, Mapping):
            for name, value in headers.items():
                self.add(name, value)
        else:
            for name, value in headers:
                self.add(name, value)

    def add(self, name: str, value: str) -> None:
        """Append a value without replacing existing ones."""
        self._items.append((str(name), str(value)))

    def get_all(self, name: str) -> List[str]:
        lowered = name.lower()
        return [value for key, value in self._items if key.lower() == lowered]

    def items_all(self) -> List[Tuple[str, str]]:
        """All (name, value) pairs including repeats, in insertion order."""
        return list(self._items)

    def copy(self) -> "Headers":
        return Headers(self)

    def __getitem__(self, name: str) -> str:
        lowered = name.lower()
        for key, value in self._items:
            if key.lower() == lowered:
                return value
        raise KeyError(name)

    def __setitem__(self, name: str, value: str) -> None:
        lowered = name.lower()
        self._items = [(k, v) for k, v in self._items if k.lower() != lowered]
        self._items.append((str(name), str(value)))

    def __delitem__(self, name: str) -> None:
        lowered = name.lower()
        remaining = [(k, v) for k, v in self._items if k.lower() != lowered]
        if len(remaining) == len(self._items):
            raise KeyError(name)
        self._items = remaining

    def __iter__(self) -> Iterator[str]:
        seen = set()
        for key, _ in self._items:
            if key.lower() not in seen:
                seen.add(key.lower())
                yield key

    def __len__(self) -> int:
        return len({key.lower() for key, _ in self._items})

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        lowered = name.lower()
        return any(key.lower() == lowered for key, _ in self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Headers):
            return sorted((k.lower(), v) for k, v in self._items) == \
                sorted((k.lower(), v) for k, v in other._items)
        if isinstance(other, Mapping):
            return self == Headers(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"Headers({self._items!r})"


def url_host(url: str) -> str:
    """Return the authority of a URL without userinfo (host[:port])."""
    netloc = urlsplit(url).netloc
    return netloc.rpartition("@")[2]


@dataclass(frozen=True)
class Request:
    """An HTTP request handed to a RequestExecutor."""
    method: str
    url: str
    headers: Headers = field(default_factory=Headers)
    body: Optional[bytes] = None

    def __post_init__(self):
        if not isinstance(self.headers, Headers):
            object.__setattr__(self, "headers", Headers(self.headers))
        object.__setattr__(self, "method", self.method.upper())

    @property
    def host(self) -> str:
        return url_host(self.url)

    def copy(self, **changes) -> "Request":
        """Clone the request with independent headers, applying changes."""
        values = {
            "method": self.method,
            "url": self.url,
            "headers": self.headers.copy(),
            "body": self.body,
        }
        values.update(changes)
        return Request(**values)


@dataclass
class Response:
    """A fully buffered HTTP response."""
    status_code: int
    headers: Headers
    content: bytes
    request: Request
    url: str = ""

    def __post_init__(self):
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)
        if not self.url:
            self.url = self.request.url

    @property
    def text(self) -> str:
        """Body decoded with the declared charset, falling back to UTF-8."""
        try:
            return self.content.decode(self.encoding or "utf-8", errors="replace")
        except LookupError:
            return self.content.decode("utf-8", errors="replace")

    @property
    def encoding(self) -> Optional[str]:
        content_type = self.headers.get("Content-Type", "")
        if "charset=" in content_type:
            return content_type.split("charset=")[1].split(";")[0].strip().strip('"') or None
        return None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    @property
    def is_redirect(self) -> bool:
        return self.status_code in REDIRECT_STATUS_CODES and "Location" in self.headers

    def __repr__(self) -> str:
        return f"<Response [{self.status_code}] {self.url}>"
