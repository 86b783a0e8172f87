from pydantic import BaseModel
from typing import Optional, Any, Dict

from ..patterns import HEX_CODE, SESSION_OR_AUTOLOGIN
from ..validation import FieldSpec

# 最大的学校 id："Universität Kassel (Fachbereich 2) Kassel"
MAX_SCHOOL_ID = 206568

# 各接口的 body 校验规则
LOGIN_SCHEMA = {
    "username": FieldSpec("string", required=True, max=32),
    "password": FieldSpec("string", required=True, max=100),
    "school": FieldSpec("number", required=True, min=1, max=MAX_SCHOOL_ID),
    "autologin": FieldSpec("boolean"),
    "legacy": FieldSpec("boolean"),
}

AUTOLOGIN_SCHEMA = {
    "autologin": FieldSpec("string", required=True, pattern=SESSION_OR_AUTOLOGIN),
}

MOODLE_LOGIN_SCHEMA = {
    "session": FieldSpec("string", required=True, size=64, pattern=HEX_CODE),
    "school": FieldSpec("number", required=True, min=1, max=MAX_SCHOOL_ID),
}


class BasicResp(BaseModel):
    error: bool = False


class ErrorResp(BasicResp):
    error: bool = True
    error_details: Any
    cooldown: Optional[int] = None


class LoginResp(BasicResp):
    # start.schulportal.hessen.de 的 sid
    token: str
    # SPH-Session，旧版登录没有
    session: Optional[str] = None
    # 只有请求里 autologin=true 且注册成功时才有
    autologin: Optional[str] = None


class AutologinResp(BasicResp):
    session: str
    token: str


class MoodleLoginResp(BasicResp):
    cookie: str
    session: str
    paula: str
    user: int


class SchemasResp(BasicResp):
    schemas: Dict[str, Dict[str, Any]]
