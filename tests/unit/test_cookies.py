"""
Unit tests for the cookie jar.

These tests verify Set-Cookie parsing, domain and path matching, expiry,
and that the jar stays consistent when shared between threads.
"""

import threading
import time

import pytest

from cloudflare_scraper.http.cookies import Cookie, CookieJar, parse_set_cookie
from cloudflare_scraper.http.models import Headers, Request, Response


def response_with_cookies(url, *cookies):
    headers = Headers([("Set-Cookie", value) for value in cookies])
    return Response(200, headers, b"", Request("GET", url))


class TestParseSetCookie:

    def test_defaults(self):
        cookie = parse_set_cookie("cf_clearance=abc123", "https://example.com/path/page")

        assert cookie.name == "cf_clearance"
        assert cookie.value == "abc123"
        assert cookie.domain == "example.com"
        assert cookie.path == "/path"
        assert cookie.host_only is True
        assert cookie.is_session_cookie

    def test_attributes(self):
        cookie = parse_set_cookie(
            "__cfduid=d41d8; Domain=.example.com; Path=/; Secure; HttpOnly; SameSite=Lax",
            "https://www.example.com/",
        )

        assert cookie.domain == "example.com"
        assert cookie.host_only is False
        assert cookie.path == "/"
        assert cookie.secure
        assert cookie.http_only
        assert cookie.same_site == "Lax"

    def test_foreign_domain_rejected(self):
        assert parse_set_cookie("a=1; Domain=evil.com", "https://example.com/") is None

    def test_malformed(self):
        assert parse_set_cookie("novalue", "https://example.com/") is None
        assert parse_set_cookie("=value", "https://example.com/") is None

    def test_max_age(self):
        cookie = parse_set_cookie("a=1; Max-Age=60", "https://example.com/", now=1000.0)

        assert cookie.expires == 1060.0

    def test_max_age_wins_over_expires(self):
        cookie = parse_set_cookie(
            "a=1; Expires=Wed, 21 Oct 2015 07:28:00 GMT; Max-Age=60",
            "https://example.com/",
            now=1000.0,
        )

        assert cookie.expires == 1060.0

    def test_expires(self):
        cookie = parse_set_cookie("a=1; Expires=Wed, 21 Oct 2015 07:28:00 GMT", "https://example.com/")

        assert cookie.expires == 1445412480.0
        assert cookie.is_expired()

    def test_non_positive_max_age_expires_immediately(self):
        cookie = parse_set_cookie("a=1; Max-Age=0", "https://example.com/", now=1000.0)

        assert cookie.is_expired(1000.0)


class TestCookieMatching:

    def test_host_only(self):
        cookie = Cookie("a", "1", "example.com")

        assert cookie.matches_domain("example.com")
        assert cookie.matches_domain("EXAMPLE.com")
        assert not cookie.matches_domain("www.example.com")

    def test_domain_cookie_matches_subdomains(self):
        cookie = Cookie("a", "1", "example.com", host_only=False)

        assert cookie.matches_domain("www.example.com")
        assert not cookie.matches_domain("badexample.com")

    @pytest.mark.parametrize("path,expected", [
        ("/foo", True),
        ("/foo/bar", True),
        ("/foobar", False),
        ("/", False),
    ])
    def test_path(self, path, expected):
        assert Cookie("a", "1", "example.com", path="/foo").matches_path(path) is expected


class TestCookieJar:

    def test_extract_and_send(self, cookie_jar):
        stored = cookie_jar.extract_cookies(
            response_with_cookies("https://example.com/", "cf_clearance=abc", "__cfduid=xyz")
        )

        assert stored == 2
        assert len(cookie_jar) == 2
        assert cookie_jar.cookie_header("https://example.com/page") == "cf_clearance=abc; __cfduid=xyz"

    def test_other_host_gets_nothing(self, cookie_jar):
        cookie_jar.extract_cookies(response_with_cookies("https://example.com/", "a=1"))

        assert cookie_jar.cookie_header("https://other.com/") is None

    def test_secure_cookie_only_over_https(self, cookie_jar):
        cookie_jar.extract_cookies(response_with_cookies("https://example.com/", "a=1; Secure"))

        assert cookie_jar.cookie_header("http://example.com/") is None
        assert cookie_jar.cookie_header("https://example.com/") == "a=1"

    def test_longest_path_first(self, cookie_jar):
        cookie_jar.set_cookie(Cookie("root", "1", "example.com", path="/"))
        cookie_jar.set_cookie(Cookie("deep", "2", "example.com", path="/a/b"))

        assert cookie_jar.cookie_header("https://example.com/a/b/c") == "deep=2; root=1"

    def test_replace_existing(self, cookie_jar):
        cookie_jar.extract_cookies(response_with_cookies("https://example.com/", "a=1"))
        cookie_jar.extract_cookies(response_with_cookies("https://example.com/", "a=2"))

        assert len(cookie_jar) == 1
        assert cookie_jar.get("a") == "2"

    def test_expired_cookie_deletes(self, cookie_jar):
        cookie_jar.extract_cookies(response_with_cookies("https://example.com/", "a=1"))
        cookie_jar.extract_cookies(response_with_cookies("https://example.com/", "a=; Max-Age=0"))

        assert len(cookie_jar) == 0
        assert cookie_jar.get("a") is None

    def test_clear_expired(self, cookie_jar):
        cookie_jar.set_cookie(Cookie("live", "1", "example.com"))
        cookie_jar._cookies[("example.com", "/", "old")] = Cookie(
            "old", "1", "example.com", expires=time.time() - 10
        )

        assert cookie_jar.clear_expired() == 1
        assert [c.name for c in cookie_jar] == ["live"]

    def test_clear_domain(self, cookie_jar):
        cookie_jar.set_cookie(Cookie("a", "1", "example.com"))
        cookie_jar.set_cookie(Cookie("b", "2", "other.com"))

        cookie_jar.clear("example.com")

        assert [c.name for c in cookie_jar] == ["b"]
        cookie_jar.clear()
        assert len(cookie_jar) == 0

    def test_get_by_domain(self, cookie_jar):
        cookie_jar.set_cookie(Cookie("a", "1", "example.com"))

        assert cookie_jar.get("a", domain=".example.com") == "1"
        assert cookie_jar.get("a", domain="other.com") is None

    def test_add_cookie_header_returns_copy(self, cookie_jar):
        cookie_jar.set_cookie(Cookie("a", "1", "example.com"))
        request = Request("GET", "https://example.com/")

        prepared = cookie_jar.add_cookie_header(request)

        assert prepared.headers["Cookie"] == "a=1"
        assert "Cookie" not in request.headers

    def test_add_cookie_header_keeps_caller_cookie(self, cookie_jar):
        cookie_jar.set_cookie(Cookie("a", "1", "example.com"))
        request = Request("GET", "https://example.com/", {"Cookie": "mine=1"})

        assert cookie_jar.add_cookie_header(request).headers["Cookie"] == "mine=1"

    def test_concurrent_access(self, cookie_jar):
        errors = []

        def worker(index):
            try:
                for i in range(200):
                    cookie_jar.set_cookie(Cookie(f"c{index}", str(i), f"host{index}.com"))
                    assert cookie_jar.get(f"c{index}") == str(i)
                    cookie_jar.cookie_header(f"https://host{index}.com/")
                    list(cookie_jar)
            except AssertionError as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(cookie_jar) == 8
        assert {c.value for c in cookie_jar} == {"199"}
