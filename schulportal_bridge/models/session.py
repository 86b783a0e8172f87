from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str = field(repr=False)
    school: int

    def portal_user(self) -> str:
        # 新版登录的用户名格式：<学校 id>.<用户名>
        return f"{self.school}.{self.username}"


@dataclass(frozen=True)
class Session:
    """
    session_cookie: SPH-Session，只对门户有效（旧版登录没有）
    final_token: start.schulportal.hessen.de 的 sid，返回给调用方
    autologin_token: SPH-AutoLogin，可选的长期令牌
    """

    session_cookie: Optional[str] = field(repr=False)
    final_token: str = field(repr=False)
    autologin_token: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class MoodleSession:
    session_cookie: str = field(repr=False)
    session_key: str = field(repr=False)
    bridge_cookie: str = field(repr=False)
    user_id: int
