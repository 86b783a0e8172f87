from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, Depends

from ..models.schemas import AUTOLOGIN_SCHEMA, LOGIN_SCHEMA, AutologinResp, ErrorResp, LoginResp
from ..models.session import Credentials
from ..services.autologin import renew_session
from ..services.login import login as login_flow
from .deps import get_http_client, rate_limited, validated_body

router = APIRouter()

ERROR_RESPONSES = {status: {"model": ErrorResp} for status in (400, 401, 403, 429, 500, 503)}


@router.post("/login", response_model=LoginResp, response_model_exclude_none=True, responses=ERROR_RESPONSES)
async def login(
    body: Dict[str, Any] = Depends(validated_body(LOGIN_SCHEMA)),
    address: Optional[str] = Depends(rate_limited("login")),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """
    用户名密码登录，返回 sid（token）与 SPH-Session（session）。
    autologin=true 时尽量额外返回长期令牌；legacy=true 走旧版 RSA/AES 登录。
    """
    credentials = Credentials(
        username=body["username"],
        password=body["password"],
        school=int(body["school"]),
    )
    session = await login_flow(
        client,
        credentials,
        autologin=bool(body.get("autologin")),
        legacy=bool(body.get("legacy")),
        address=address,
    )
    return LoginResp(
        token=session.final_token,
        session=session.session_cookie,
        autologin=session.autologin_token,
    )


@router.post("/autologin", response_model=AutologinResp, responses=ERROR_RESPONSES)
async def autologin(
    body: Dict[str, Any] = Depends(validated_body(AUTOLOGIN_SCHEMA)),
    address: Optional[str] = Depends(rate_limited("autologin")),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """用之前拿到的 SPH-AutoLogin 免密续期"""
    session = await renew_session(client, body["autologin"], address=address)
    return AutologinResp(session=session.session_cookie, token=session.final_token)
