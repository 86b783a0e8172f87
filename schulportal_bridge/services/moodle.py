import asyncio
import base64
import socket
from typing import Optional
from urllib.parse import urlsplit

import httpx

from ..config import settings
from ..exceptions import AuthFailure, MaintenanceFailure, NotFoundFailure, ProtocolFailure
from ..logger import get_logger
from ..models.session import MoodleSession
from ..patterns import MOODLE_BRIDGE_COOKIE, MOODLE_COOKIE, MOODLE_SESSION_KEY, SESSION_OR_AUTOLOGIN, matches
from .cookies import format_cookie, parse_set_cookies
from .html_extract import extract_moodle_session_key, extract_testsession_user_id
from .login import SESSION_COOKIE
from .upstream import guard_upstream, redirect_target, upstream_headers

logger = get_logger(__name__)

MOODLE_SESSION_COOKIE = "MoodleSession"


class MoodleDirectory:
    """
    学校 id -> Moodle 实例。

    实例地址由 MOODLE_URL_TEMPLATE 推出（如 mo1234.schulportal.hessen.de），
    但并不是每个学校都有 Moodle，exists() 通过 DNS 解析判断。
    """

    def __init__(self, url_template: Optional[str] = None, timeout: Optional[float] = None):
        self.url_template = (url_template or settings.MOODLE_URL_TEMPLATE).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT

    def moodle_url(self, school: int) -> str:
        return self.url_template.format(school=school)

    def login_url(self, school: int) -> str:
        return f"{self.moodle_url(school)}/login/index.php"

    async def exists(self, school: int) -> bool:
        host = urlsplit(self.moodle_url(school)).hostname
        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(loop.getaddrinfo(host, 443), timeout=self.timeout)
        except socket.gaierror:
            return False
        except asyncio.TimeoutError:
            raise MaintenanceFailure() from None
        return True


def expect_location(response: httpx.Response, failure: type) -> str:
    location = redirect_target(response)
    if not location:
        raise failure()
    return location


def expect_bridge_cookie(response: httpx.Response, login_url: str) -> str:
    """SAML artifact 之后应 302 回到该校 Moodle 登录页，并带上联合认证 cookie"""
    if response.status_code != 302:
        raise MaintenanceFailure("Wartungsarbeiten")
    cookie = parse_set_cookies(response).get(settings.MOODLE_BRIDGE_COOKIE)
    if redirect_target(response) != login_url or not matches(MOODLE_BRIDGE_COOKIE, cookie):
        raise AuthFailure()
    return cookie


def expect_test_session(response: httpx.Response, login_url: str):
    """Moodle 登录成功会 303 到 ?testsession=<用户 id>，同时下发 MoodleSession"""
    if response.status_code != 303:
        raise AuthFailure()
    user_id = extract_testsession_user_id(redirect_target(response), login_url)
    if user_id is None:
        raise AuthFailure()
    cookie = parse_set_cookies(response).get(MOODLE_SESSION_COOKIE)
    if not matches(MOODLE_COOKIE, cookie):
        raise AuthFailure()
    return user_id, cookie


async def moodle_login(
    client: httpx.AsyncClient,
    session_cookie: str,
    school: int,
    *,
    directory: Optional[MoodleDirectory] = None,
    address: Optional[str] = None,
) -> MoodleSession:
    """
    用门户的 SPH-Session 经 SAML 代理换取该校 Moodle 的会话和 sesskey。
    """
    directory = directory or MoodleDirectory()
    login_url = directory.login_url(school)

    async with guard_upstream("moodle login"):
        if not matches(SESSION_OR_AUTOLOGIN, session_cookie):
            raise AuthFailure()
        if not await directory.exists(school):
            raise NotFoundFailure("Moodle doesn't exist for given school")

        session_header = {"Cookie": format_cookie({SESSION_COOKIE: session_cookie})}

        # 1) SAML 代理给出需要 SPH-Session 的单点登录地址
        response = await client.get(
            f"{settings.SAML_PROXY_URL.rstrip('/')}/",
            params={"url": base64.b64encode(login_url.encode()).decode()},
            headers=upstream_headers(address),
        )
        saml_url = expect_location(response, ProtocolFailure)

        # 2) 带上 SPH-Session 拿到 proxySingleSignOnArtifact 地址
        response = await client.get(saml_url, headers=upstream_headers(address, session_header))
        artifact_url = expect_location(response, AuthFailure)

        # 3) artifact 跳回 Moodle 登录页，并下发联合认证 cookie
        response = await client.get(artifact_url, headers=upstream_headers(address, session_header))
        bridge_cookie = expect_bridge_cookie(response, login_url)

        # 4) 带联合认证 cookie 登录 Moodle
        response = await client.get(
            login_url,
            headers=upstream_headers(address, {"Cookie": format_cookie({settings.MOODLE_BRIDGE_COOKIE: bridge_cookie})}),
        )
        user_id, moodle_cookie = expect_test_session(response, login_url)

        # 5) /my/ 页面注销链接里有 sesskey
        response = await client.get(
            f"{directory.moodle_url(school)}/my/",
            headers=upstream_headers(address, {"Cookie": format_cookie({MOODLE_SESSION_COOKIE: moodle_cookie})}),
        )
        session_key = extract_moodle_session_key(response.text)
        if not matches(MOODLE_SESSION_KEY, session_key):
            raise AuthFailure()

        logger.info("Moodle login finished for school %s", school)
        return MoodleSession(
            session_cookie=moodle_cookie,
            session_key=session_key,
            bridge_cookie=bridge_cookie,
            user_id=user_id,
        )
