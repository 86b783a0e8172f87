import httpx

from schulportal_bridge.services.cookies import format_cookie, has_set_cookie, parse_cookie, parse_set_cookies


def test_parse_cookie_drops_attributes():
    assert parse_cookie("SPH-Session=abc; secure; Domain=x.com") == {"SPH-Session": "abc"}


def test_parse_cookie_attribute_names_case_insensitive():
    text = "sid=abc; Path=/; HttpOnly; SameSite=Lax; Max-Age=3600; EXPIRES=Fri, 01 Jan 2100 00:00:00 GMT"
    assert parse_cookie(text) == {"sid": "abc"}


def test_parse_cookie_skips_malformed_parts():
    assert parse_cookie("a=1; garbage; =2; b=x=y") == {"a": "1", "b": "x=y"}


def test_parse_cookie_unquotes():
    assert parse_cookie("name%20x=hello%3Bworld") == {"name x": "hello;world"}


def test_parse_cookie_empty():
    assert parse_cookie("") == {}
    assert parse_cookie(None) == {}


def test_parse_set_cookies_merges_headers():
    response = httpx.Response(
        302,
        headers=[
            ("set-cookie", "i=5120; path=/"),
            ("set-cookie", "SPH-Session=abc; secure; HttpOnly"),
        ],
    )
    assert parse_set_cookies(response) == {"i": "5120", "SPH-Session": "abc"}
    assert has_set_cookie(response)


def test_has_set_cookie_false():
    assert not has_set_cookie(httpx.Response(200))


def test_format_cookie():
    assert format_cookie({"i": "5120", "sid": "abc"}) == "i=5120; sid=abc"
