"""
新版（SPH2）登录流程。

每个检查点一个状态，每次状态转移都是 (progress, 上游响应) -> 新 progress 的纯函数，
出现任何偏差直接抛出对应的 BridgeError。驱动函数 login() 只负责发请求。
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional
from urllib.parse import urljoin

import httpx

from ..config import settings
from ..exceptions import AuthFailure, MaintenanceFailure, ProtocolFailure
from ..logger import get_logger
from ..models.session import Credentials, Session
from ..patterns import SESSION_OR_AUTOLOGIN, SID, matches
from .cookies import format_cookie, has_set_cookie, parse_set_cookies
from .html_extract import extract_embedded_token, extract_lockout_seconds
from .legacy_login import legacy_login
from .upstream import guard_upstream, upstream_headers

logger = get_logger(__name__)

SESSION_COOKIE = "SPH-Session"
AUTOLOGIN_COOKIE = "SPH-AutoLogin"
FINAL_COOKIE = "sid"


class LoginState(str, Enum):
    START = "start"
    CREDENTIALS_SUBMITTED = "credentials_submitted"
    SESSION_OBTAINED = "session_obtained"
    AUTOLOGIN_REGISTERED = "autologin_registered"
    BRIDGE_REDIRECT_RESOLVED = "bridge_redirect_resolved"
    DONE = "done"


@dataclass(frozen=True)
class LoginProgress:
    state: LoginState = LoginState.START
    session: Optional[str] = None
    autologin_token: Optional[str] = None
    bridge_location: Optional[str] = None
    final_token: Optional[str] = None

    def advance(self, state: LoginState, **changes) -> "LoginProgress":
        return replace(self, state=state, **changes)

    def to_session(self) -> Session:
        if self.state is not LoginState.DONE:
            raise ValueError(f"login has not finished (state={self.state.value})")
        return Session(self.session, self.final_token, self.autologin_token)


def _require(progress: LoginProgress, *states: LoginState) -> None:
    if progress.state not in states:
        raise ValueError(f"unexpected login state {progress.state.value}")


# ---- 状态转移 ----

def on_credentials_response(progress: LoginProgress, response: httpx.Response) -> LoginProgress:
    _require(progress, LoginState.START)
    if response.status_code == 503:
        raise MaintenanceFailure("Wartungsarbeiten")
    if not has_set_cookie(response):
        raise ProtocolFailure("Expected a 'set-cookie' header from Schulportal")
    return progress.advance(LoginState.CREDENTIALS_SUBMITTED)


def on_session_cookie(progress: LoginProgress, response: httpx.Response) -> LoginProgress:
    """没有 SPH-Session 说明凭证错误；页面上若有锁定倒计时一并返回"""
    _require(progress, LoginState.CREDENTIALS_SUBMITTED)
    session = parse_set_cookies(response).get(SESSION_COOKIE)
    if not session:
        raise AuthFailure(cooldown=extract_lockout_seconds(response.text))
    if not matches(SESSION_OR_AUTOLOGIN, session):
        raise ProtocolFailure(f"Malformed {SESSION_COOKIE} cookie")
    return progress.advance(LoginState.SESSION_OBTAINED, session=session)


def on_register_browser(progress: LoginProgress, response: httpx.Response) -> LoginProgress:
    """注册浏览器失败不影响登录，只是拿不到长期令牌"""
    _require(progress, LoginState.SESSION_OBTAINED)
    token = parse_set_cookies(response).get(AUTOLOGIN_COOKIE)
    if response.status_code != 302 or not matches(SESSION_OR_AUTOLOGIN, token):
        logger.info("Browser registration declined (status %s)", response.status_code)
        return progress
    return progress.advance(LoginState.AUTOLOGIN_REGISTERED, autologin_token=token)


def on_bridge_redirect(progress: LoginProgress, response: httpx.Response) -> LoginProgress:
    _require(progress, LoginState.SESSION_OBTAINED, LoginState.AUTOLOGIN_REGISTERED)
    location = response.headers.get("location")
    if response.status_code != 302 or not location or not location.startswith(settings.bridge_login_prefix()):
        raise AuthFailure()
    return progress.advance(LoginState.BRIDGE_REDIRECT_RESOLVED, bridge_location=location)


def on_final_cookie(progress: LoginProgress, response: httpx.Response) -> LoginProgress:
    _require(progress, LoginState.BRIDGE_REDIRECT_RESOLVED)
    token = parse_set_cookies(response).get(FINAL_COOKIE)
    if not matches(SID, token):
        raise MaintenanceFailure()
    return progress.advance(LoginState.DONE, final_token=token)


# ---- 驱动 ----

async def _register_browser(
    client: httpx.AsyncClient,
    progress: LoginProgress,
    login_response: httpx.Response,
    address: Optional[str],
) -> LoginProgress:
    session_cookie = format_cookie({SESSION_COOKIE: progress.session})
    try:
        # token 藏在自动提交的表单里；登录响应里没有就再取一次登录页
        token = extract_embedded_token(login_response.text)
        if token is None:
            page = await client.get(
                settings.PORTAL_LOGIN_URL,
                headers=upstream_headers(address, {"Cookie": session_cookie}),
            )
            token = extract_embedded_token(page.text)
        if not matches(SESSION_OR_AUTOLOGIN, token):
            logger.info("No embedded token found, continuing without autologin")
            return progress

        response = await client.post(
            urljoin(settings.PORTAL_LOGIN_URL, "registerbrowser"),
            data={"token": token, "fg": settings.FINGERPRINT_PLACEHOLDER},
            headers=upstream_headers(address, {"Cookie": session_cookie}),
        )
        return on_register_browser(progress, response)
    except httpx.HTTPError as e:
        logger.warning("Browser registration failed, continuing without autologin: %r", e)
        return progress


async def login(
    client: httpx.AsyncClient,
    credentials: Credentials,
    *,
    autologin: bool = False,
    legacy: bool = False,
    address: Optional[str] = None,
) -> Session:
    """
    用户名密码 -> SPH-Session -> (可选 SPH-AutoLogin) -> connect 跳转 -> sid

    legacy=True 时整个流程换成旧版 RSA/AES 登录，不支持 autologin。
    """
    if legacy:
        return await legacy_login(client, credentials, address=address)

    async with guard_upstream("login"):
        progress = LoginProgress()

        response = await client.post(
            settings.LOGIN_URL,
            data={
                "user": credentials.portal_user(),
                "password": credentials.password,
                "stayconnected": "1" if autologin else "0",
            },
            headers=upstream_headers(address),
        )
        progress = on_credentials_response(progress, response)
        progress = on_session_cookie(progress, response)

        if autologin:
            progress = await _register_browser(client, progress, response, address)

        response = await client.head(
            settings.CONNECT_URL,
            headers=upstream_headers(address, {"Cookie": format_cookie({SESSION_COOKIE: progress.session})}),
        )
        progress = on_bridge_redirect(progress, response)

        response = await client.head(progress.bridge_location, headers=upstream_headers(address))
        progress = on_final_cookie(progress, response)

        logger.info("Login finished for school %s (autologin=%s)", credentials.school, progress.autologin_token is not None)
        return progress.to_session()
