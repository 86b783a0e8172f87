import re

# 上游令牌在被信任或转发之前都必须匹配这里的格式
SESSION_OR_AUTOLOGIN = re.compile(r"^[a-f0-9]{64}$")
SID = re.compile(r"^[a-z0-9]{26}$")
MOODLE_COOKIE = re.compile(r"^[a-z0-9]{26}$")
MOODLE_SESSION_KEY = re.compile(r"^[a-z0-9]{10}$", re.I)
# 联合认证 cookie 的格式没有公开，只要求是 RFC 6265 的 cookie-octet
MOODLE_BRIDGE_COOKIE = re.compile(r"^[\x21\x23-\x2B\x2D-\x3A\x3C-\x5B\x5D-\x7E]{1,512}$")
HEX_CODE = re.compile(r"^[a-f0-9]+$")


def matches(pattern: re.Pattern, value) -> bool:
    return isinstance(value, str) and pattern.match(value) is not None
