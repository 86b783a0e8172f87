from urllib.parse import parse_qs

import pytest

from conftest import AUTOLOGIN, EMBEDDED, SESSION, SID, response, token_form
from schulportal_bridge.exceptions import AuthFailure
from schulportal_bridge.services.autologin import needs_login, renew_session

BRIDGE_LOCATION = "https://start.schulportal.hessen.de/schulportallogin.php?k=" + "1" * 96


def renewed_session():
    return response(
        302,
        location="https://login.schulportal.hessen.de/",
        cookies=[f"SPH-Session={SESSION}; path=/; secure"],
    )


def test_needs_login():
    assert needs_login("https://login.schulportal.hessen.de/?url=abc")
    assert needs_login("https://login.bildung.hessen.de/")
    assert not needs_login(BRIDGE_LOCATION)


def test_renew_session_success(upstream):
    script = upstream(
        response(200, text=token_form(EMBEDDED)),
        renewed_session(),
        response(302, location=BRIDGE_LOCATION),
        response(200, cookies=[f"sid={SID}; path=/"]),
    )

    session = script.run(renew_session, AUTOLOGIN, address="198.51.100.2")

    assert session.session_cookie == SESSION
    assert session.final_token == SID

    page, submit, connect, bridge = script.requests
    assert page.headers["cookie"] == f"SPH-AutoLogin={AUTOLOGIN}"
    assert parse_qs(submit.content.decode())["token"] == [EMBEDDED]
    assert submit.headers["cookie"] == f"SPH-AutoLogin={AUTOLOGIN}"
    assert connect.headers["cookie"] == f"SPH-Session={SESSION}"
    assert str(bridge.url) == BRIDGE_LOCATION
    assert all(r.headers["x-forwarded-for"] == "198.51.100.2" for r in script.requests)


def test_renew_session_expired_token(upstream):
    script = upstream(response(200, text="<form><input type=\"text\" name=\"user\"></form>"))

    with pytest.raises(AuthFailure):
        script.run(renew_session, AUTOLOGIN)

    assert len(script.requests) == 1


def test_renew_session_not_redirected_to_login(upstream):
    script = upstream(
        response(200, text=token_form(EMBEDDED)),
        response(200, cookies=[f"SPH-Session={SESSION}"]),
    )

    with pytest.raises(AuthFailure):
        script.run(renew_session, AUTOLOGIN)


def test_renew_session_connect_sends_back_to_login(upstream):
    script = upstream(
        response(200, text=token_form(EMBEDDED)),
        renewed_session(),
        response(302, location="https://login.schulportal.hessen.de/?url=aHR0cHM6Ly9jb25uZWN0"),
    )

    with pytest.raises(AuthFailure):
        script.run(renew_session, AUTOLOGIN)


def test_renew_session_without_sid(upstream):
    script = upstream(
        response(200, text=token_form(EMBEDDED)),
        renewed_session(),
        response(302, location=BRIDGE_LOCATION),
        response(200),
    )

    with pytest.raises(AuthFailure):
        script.run(renew_session, AUTOLOGIN)


def test_renew_session_rejects_malformed_token(upstream):
    script = upstream()

    with pytest.raises(AuthFailure):
        script.run(renew_session, "nope")

    assert script.requests == []


def test_renew_session_follows_relative_location(upstream):
    script = upstream(
        response(200, text=token_form(EMBEDDED)),
        renewed_session(),
        response(302, location="/schulportallogin.php?k=" + "1" * 96),
        response(200, cookies=[f"sid={SID}; path=/"]),
    )

    session = script.run(renew_session, AUTOLOGIN)

    assert session.final_token == SID
    assert str(script.requests[3].url) == "https://connect.schulportal.hessen.de/schulportallogin.php?k=" + "1" * 96


def test_renew_session_relative_location_back_to_login(upstream):
    script = upstream(
        response(200, text=token_form(EMBEDDED)),
        response(302, location="/", cookies=[f"SPH-Session={SESSION}"]),
        response(302, location=BRIDGE_LOCATION),
        response(200, cookies=[f"sid={SID}; path=/"]),
    )

    session = script.run(renew_session, AUTOLOGIN)

    assert session.session_cookie == SESSION
