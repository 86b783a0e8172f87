import re
from typing import Optional

_LINE_BREAK = re.compile(r"\r\n|\n|\r")
_WHITESPACE = re.compile(r"\s+")
_BR = "<1br />"
_PARAGRAPH = "<2br />"

EMBEDDED_TOKEN = re.compile(r'<input type="hidden" name="token" value="([a-f0-9]{64})"(?: ?/)?>', re.I)
LOCKOUT_SECONDS = re.compile(r'<span id="authErrorLocktime">([0-9]{1,2})</span>', re.I)
LEGACY_IKEY = re.compile(r'<input type="hidden" name="ikey" value="([0-9a-f]{32})"(?: ?/)?>', re.I)
MOODLE_SESSION_KEY = re.compile(r"logout\.php\?sesskey=([a-z0-9]{10})", re.I)


def remove_breaks(text: str, paragraph: str = "\n\n") -> str:
    """
    统一门户 HTML 的换行与空白，便于单行正则匹配。

    单个换行变空格，连续两个换行直接去掉，连续三个换行视为段落，
    最后以 paragraph 还原段落分隔。
    """
    text = _LINE_BREAK.sub(_BR, text or "")
    text = text.replace(_BR * 3, _BR + _PARAGRAPH)
    text = text.replace(_BR * 2, "")
    text = text.replace(_BR, " ")
    text = _WHITESPACE.sub(" ", text)
    return text.replace(_PARAGRAPH, paragraph)


def _first_group(pattern: re.Pattern, html: str) -> Optional[str]:
    m = pattern.search(remove_breaks(html))
    return m.group(1) if m else None


def extract_embedded_token(html: str) -> Optional[str]:
    """自动提交表单里隐藏的一次性 token（64 位 hex）"""
    return _first_group(EMBEDDED_TOKEN, html)


def extract_lockout_seconds(html: str) -> Optional[int]:
    """密码错误多次后页面给出的倒计时秒数"""
    value = _first_group(LOCKOUT_SECONDS, html)
    return int(value) if value is not None else None


def extract_legacy_ikey(html: str) -> Optional[str]:
    return _first_group(LEGACY_IKEY, html)


def extract_moodle_session_key(html: str) -> Optional[str]:
    """Moodle 页面注销链接里的 sesskey"""
    return _first_group(MOODLE_SESSION_KEY, html)


def extract_testsession_user_id(location: Optional[str], login_url: str) -> Optional[int]:
    """
    Moodle 登录成功后会 303 到 <login_url>?testsession=<用户 id>
    """
    if not location:
        return None
    m = re.match(re.escape(login_url) + r"\?testsession=([0-9]+)$", location, re.I)
    return int(m.group(1)) if m else None
