from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, Depends

from ..models.schemas import MOODLE_LOGIN_SCHEMA, ErrorResp, MoodleLoginResp
from ..services.moodle import MoodleDirectory, moodle_login
from .deps import get_http_client, get_moodle_directory, rate_limited, validated_body

router = APIRouter()


@router.post(
    "/login",
    response_model=MoodleLoginResp,
    responses={status: {"model": ErrorResp} for status in (400, 401, 403, 404, 429, 500, 503)},
)
async def login(
    body: Dict[str, Any] = Depends(validated_body(MOODLE_LOGIN_SCHEMA)),
    address: Optional[str] = Depends(rate_limited("moodle_login")),
    directory: MoodleDirectory = Depends(get_moodle_directory),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """
    用 SPH-Session 登录该校 Moodle。
    paula 即联合认证 cookie（以前叫 Paula，前端沿用这个名字）。
    """
    moodle = await moodle_login(
        client,
        body["session"],
        int(body["school"]),
        directory=directory,
        address=address,
    )
    return MoodleLoginResp(
        cookie=moodle.session_cookie,
        session=moodle.session_key,
        paula=moodle.bridge_cookie,
        user=moodle.user_id,
    )
