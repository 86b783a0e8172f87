from contextlib import asynccontextmanager
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import AsyncIterator, Dict, Optional
from urllib.parse import urljoin

import httpx

from ..config import settings
from ..exceptions import BridgeError, InternalFailure, MaintenanceFailure, ProtocolFailure
from ..logger import get_logger

logger = get_logger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def _refusing_cookie_jar() -> CookieJar:
    # 不接受任何 Set-Cookie，每一跳的 cookie 都由调用方显式带上
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


def build_client(
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    上游请求统一用的 AsyncClient：不自动跟随重定向、有超时、不保存 cookie。
    """
    return httpx.AsyncClient(
        timeout=timeout or settings.HTTP_TIMEOUT,
        follow_redirects=False,
        cookies=_refusing_cookie_jar(),
        transport=transport,
    )


def upstream_headers(address: Optional[str] = None, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    headers = {
        "X-Forwarded-For": address or "127.0.0.1",
        "User-Agent": settings.USER_AGENT,
    }
    if extra:
        headers.update(extra)
    return headers


def redirect_target(response: httpx.Response) -> Optional[str]:
    """Location 头；相对地址按本次请求的 URL 解析成绝对地址"""
    location = response.headers.get("location")
    if not location:
        return None
    return urljoin(str(response.url), location)


@asynccontextmanager
async def guard_upstream(operation: str) -> AsyncIterator[None]:
    """
    包住一次完整的编排：
    BridgeError 原样抛出；超时视为维护（503）；其他异常记日志后转为 500。
    """
    try:
        yield
    except ProtocolFailure as e:
        logger.error("%s: upstream protocol changed: %s", operation, e)
        raise
    except BridgeError as e:
        logger.info("%s failed with %s (%s)", operation, type(e).__name__, e.status_code)
        raise
    except httpx.TimeoutException as e:
        logger.warning("%s: upstream timed out: %r", operation, e)
        raise MaintenanceFailure() from None
    except Exception:
        logger.exception("%s: unexpected failure", operation)
        raise InternalFailure() from None
