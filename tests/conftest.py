import asyncio
from typing import Any, Callable, List

import httpx
import pytest

from schulportal_bridge.services.upstream import build_client

SESSION = "0123456789abcdef" * 4
AUTOLOGIN = "fedcba9876543210" * 4
EMBEDDED = "a1b2c3d4" * 8
SID = "abcdefghijklm0123456789xyz"
MOODLE_COOKIE = "q" * 20 + "123456"


class ScriptedUpstream:
    """
    按顺序回放预设响应的上游。

    每一项可以是 httpx.Response、异常实例，或 request -> Response 的函数；
    收到的请求都记录在 requests 里。脚本用完后再有请求直接报错。
    """

    def __init__(self, *steps: Any):
        self.steps: List[Any] = list(steps)
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.steps:
            raise AssertionError(f"unexpected upstream request: {request.method} {request.url}")
        step = self.steps.pop(0)
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return step(request)
        return step

    def client(self) -> httpx.AsyncClient:
        return build_client(transport=httpx.MockTransport(self.handler))

    def run(self, flow: Callable, *args, **kwargs):
        async def _run():
            async with self.client() as client:
                return await flow(client, *args, **kwargs)

        return asyncio.run(_run())


def response(status: int = 200, *, location: str = None, cookies=(), text: str = "", json=None) -> httpx.Response:
    headers = []
    if location is not None:
        headers.append(("location", location))
    for cookie in cookies:
        headers.append(("set-cookie", cookie))
    if json is not None:
        return httpx.Response(status, headers=headers, json=json)
    return httpx.Response(status, headers=headers, text=text)


def token_form(token: str) -> str:
    return (
        '<form action="/" method="post">\n'
        f'  <input type="hidden" name="token" value="{token}">\n'
        "</form>"
    )


@pytest.fixture
def upstream():
    """工厂：upstream(step1, step2, ...) -> ScriptedUpstream"""
    return ScriptedUpstream
