from typing import Dict
from urllib.parse import unquote

import httpx

# Set-Cookie 属性名，大小写不敏感，可能带值（secure=1 之类）
COOKIE_ATTRIBUTES = frozenset({
    "expires",
    "max-age",
    "secure",
    "httponly",
    "samesite",
    "domain",
    "path",
    "priority",
    "partitioned",
})


def parse_cookie(text: str) -> Dict[str, str]:
    """
    解析 Cookie / Set-Cookie 头文本，去掉属性，返回 {name: value}。
    格式不对的片段直接丢弃，不抛异常。
    """
    cookies: Dict[str, str] = {}
    if not text:
        return cookies
    for part in text.split(";"):
        name, sep, value = part.partition("=")
        name = name.strip()
        if name.lower() in COOKIE_ATTRIBUTES:
            continue
        if not sep or not name:
            continue
        cookies[unquote(name)] = unquote(value.strip())
    return cookies


def parse_set_cookies(response: httpx.Response) -> Dict[str, str]:
    """把响应里所有 Set-Cookie 行合在一起解析"""
    return parse_cookie("; ".join(response.headers.get_list("set-cookie")))


def has_set_cookie(response: httpx.Response) -> bool:
    return bool(response.headers.get_list("set-cookie"))


def format_cookie(pairs: Dict[str, str]) -> str:
    """构造请求用的 Cookie 头；每一跳都显式传递，不依赖 cookie jar"""
    return "; ".join(f"{name}={value}" for name, value in pairs.items())
