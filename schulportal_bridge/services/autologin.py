from typing import Optional
from urllib.parse import urlsplit

import httpx

from ..config import settings
from ..exceptions import AuthFailure
from ..logger import get_logger
from ..models.session import Session
from ..patterns import SESSION_OR_AUTOLOGIN, SID, matches
from .cookies import format_cookie, parse_set_cookies
from .html_extract import extract_embedded_token
from .login import AUTOLOGIN_COOKIE, FINAL_COOKIE, SESSION_COOKIE
from .upstream import guard_upstream, redirect_target, upstream_headers

logger = get_logger(__name__)


def needs_login(location: str) -> bool:
    """connect 把我们送回登录页，说明 SPH-Session 没被接受"""
    host = urlsplit(location).netloc.lower()
    login_hosts = {urlsplit(settings.PORTAL_LOGIN_URL).netloc.lower(), urlsplit(settings.LOGIN_URL).netloc.lower()}
    return host in login_hosts


def expect_session_redirect(response: httpx.Response) -> str:
    if response.status_code != 302 or redirect_target(response) != settings.PORTAL_LOGIN_URL:
        raise AuthFailure()
    session = parse_set_cookies(response).get(SESSION_COOKIE)
    if not matches(SESSION_OR_AUTOLOGIN, session):
        raise AuthFailure()
    return session


def expect_bridge_location(response: httpx.Response) -> str:
    location = redirect_target(response)
    if response.status_code != 302 or not location or needs_login(location):
        raise AuthFailure()
    return location


def expect_final_token(response: httpx.Response) -> str:
    token = parse_set_cookies(response).get(FINAL_COOKIE)
    if not matches(SID, token):
        raise AuthFailure()
    return token


async def renew_session(
    client: httpx.AsyncClient,
    autologin_token: str,
    *,
    address: Optional[str] = None,
) -> Session:
    """
    用 SPH-AutoLogin 重新换取 SPH-Session 与 sid，不需要密码。
    """
    async with guard_upstream("autologin"):
        if not matches(SESSION_OR_AUTOLOGIN, autologin_token):
            raise AuthFailure()
        autologin_cookie = format_cookie({AUTOLOGIN_COOKIE: autologin_token})

        # 1) 登录页里有自动提交的一次性 token；令牌过期时页面上没有
        page = await client.get(
            settings.PORTAL_LOGIN_URL,
            headers=upstream_headers(address, {"Cookie": autologin_cookie}),
        )
        token = extract_embedded_token(page.text)
        if token is None:
            raise AuthFailure()

        # 2) 提交 token，期望 302 回到登录页并带上 SPH-Session
        response = await client.post(
            settings.PORTAL_LOGIN_URL,
            data={"token": token, "fg": settings.FINGERPRINT_PLACEHOLDER},
            headers=upstream_headers(address, {"Cookie": autologin_cookie}),
        )
        session = expect_session_redirect(response)

        # 3) 之后和普通登录一样走 connect
        response = await client.get(
            settings.CONNECT_URL,
            headers=upstream_headers(address, {"Cookie": format_cookie({SESSION_COOKIE: session})}),
        )
        location = expect_bridge_location(response)

        response = await client.get(location, headers=upstream_headers(address))
        final_token = expect_final_token(response)

        logger.info("Autologin renewal finished")
        return Session(session_cookie=session, final_token=final_token)
