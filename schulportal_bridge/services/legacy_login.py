"""
旧版（SPH1）登录，新版登录在高负载下失败时可用：

1. GET start.schulportal.hessen.de/index.php?i=<学校>&oldLogin=1 取匿名 sid（cookie）和 ikey（表单）
2. 生成 AES 口令，用固定 RSA 公钥包起来做握手，校验服务器返回的 challenge
3. 用该口令加密凭证提交，响应里的 sid 就是最终 token

这个接口诞生于 HTTPS 还不普及的时候，所以才有这套自制加密。
“保持登录”选项在这里没有实现，旧版登录不会返回长期令牌。
"""
import random
from typing import Optional
from urllib.parse import urlencode

import httpx

from ..config import settings
from ..exceptions import AuthFailure, MaintenanceFailure, ProtocolFailure
from ..logger import get_logger
from ..models.session import Credentials, Session
from ..patterns import SID, matches
from ..security import LegacyHandshake
from .cookies import format_cookie, parse_set_cookies
from .html_extract import extract_legacy_ikey
from .upstream import FORM_CONTENT_TYPE, guard_upstream, upstream_headers

logger = get_logger(__name__)


def _start_url(path: str) -> str:
    return f"{settings.START_URL.rstrip('/')}/{path}"


def read_challenge(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError as e:
        raise ProtocolFailure("Handshake response is not JSON") from e
    challenge = payload.get("challenge") if isinstance(payload, dict) else None
    if not isinstance(challenge, str) or not challenge:
        raise ProtocolFailure("Handshake response carries no challenge")
    return challenge


def credential_payload(credentials: Credentials, ikey: str) -> str:
    return urlencode([
        ("f", "alllogin"),
        ("art", "all"),
        ("sid", ""),
        ("ikey", ikey),
        ("user", credentials.username),
        ("passw", credentials.password),
    ])


async def legacy_login(
    client: httpx.AsyncClient,
    credentials: Credentials,
    *,
    address: Optional[str] = None,
    public_key_pem: Optional[str] = None,
) -> Session:
    public_key_pem = public_key_pem or settings.SPH_PUBLIC_KEY
    if not public_key_pem:
        logger.error("Legacy login requested but SPH_PUBLIC_KEY is not configured")
        raise MaintenanceFailure("Legacy login is not available")

    async with guard_upstream("legacy login"):
        page = await client.get(
            _start_url("index.php"),
            params={"i": credentials.school, "oldLogin": 1},
            headers=upstream_headers(address),
        )
        anonymous_sid = parse_set_cookies(page).get("sid")
        ikey = extract_legacy_ikey(page.text)
        # SPH1 对该学校（或全局）已经下线
        if ikey is None or not matches(SID, anonymous_sid):
            raise MaintenanceFailure()

        handshake = LegacyHandshake.create(public_key_pem)
        headers = upstream_headers(address, {
            "Cookie": format_cookie({"i": str(credentials.school), "sid": anonymous_sid}),
            "Content-Type": FORM_CONTENT_TYPE,
        })

        response = await client.post(
            _start_url("ajax.php"),
            params={"f": "rsaHandshake", "s": random.randrange(2000)},
            content=urlencode({"key": handshake.encrypted_key()}),
            headers=headers,
        )
        handshake.verify_challenge(read_challenge(response))

        response = await client.post(
            _start_url("ajax.php"),
            content=urlencode({"crypt": handshake.encrypt(credential_payload(credentials, ikey))}),
            headers=headers,
        )
        token = parse_set_cookies(response).get("sid")
        if not matches(SID, token):
            raise AuthFailure()

        logger.info("Legacy login finished for school %s", credentials.school)
        return Session(session_cookie=None, final_token=token)
