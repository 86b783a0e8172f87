from typing import Any, AsyncIterator, Callable, Dict, Optional

import httpx
from fastapi import Depends, Request

from ..config import settings
from ..exceptions import ValidationFailure
from ..services.moodle import MoodleDirectory
from ..services.ratelimit import RateLimiter
from ..services.upstream import build_client
from ..validation import Schema, validate_body

CONTENT_TYPE_NO_JSON = "Expected 'application/json' as 'content-type' header"
INVALID_JSON = "Invalid JSON body"


async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    """每个请求一个上游 client，请求结束即关闭"""
    async with build_client() as client:
        yield client


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_moodle_directory(request: Request) -> MoodleDirectory:
    return request.app.state.moodle_directory


def client_address(request: Request) -> Optional[str]:
    """
    客户端地址，限流和上游 X-Forwarded-For 都以它为准。

    默认取 TCP 对端地址。TRUST_FORWARDED_FOR 打开时取 X-Forwarded-For
    从右数第 TRUSTED_PROXY_HOPS 个条目，更靠左的条目由客户端自己填写，不可信。
    拿不到时返回 None（限流层会直接拒绝）。
    """
    if settings.TRUST_FORWARDED_FOR:
        hops = [hop.strip() for hop in request.headers.get("x-forwarded-for", "").split(",")]
        hops = [hop for hop in hops if hop]
        if len(hops) >= settings.TRUSTED_PROXY_HOPS:
            return hops[-settings.TRUSTED_PROXY_HOPS]
    return request.client.host if request.client else None


async def read_json_body(request: Request) -> Any:
    content_type = request.headers.get("content-type", "")
    if content_type.split(";")[0].strip().lower() != "application/json":
        raise ValidationFailure(CONTENT_TYPE_NO_JSON)
    try:
        return await request.json()
    except ValueError:
        raise ValidationFailure(INVALID_JSON)


def validated_body(schema: Schema) -> Callable:
    """按 schema 校验 JSON body 的依赖；不通过时返回逐字段的报告"""

    async def dependency(request: Request) -> Dict[str, Any]:
        body = await read_json_body(request)
        result = validate_body(schema, body)
        if not result.ok:
            raise ValidationFailure(result.to_dict())
        return body

    return dependency


def rate_limited(endpoint_key: str) -> Callable:
    """限流依赖，放行时返回客户端地址（转发给上游的 X-Forwarded-For）"""

    def dependency(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> Optional[str]:
        address = client_address(request)
        limiter.enforce(endpoint_key, address)
        return address

    return dependency
