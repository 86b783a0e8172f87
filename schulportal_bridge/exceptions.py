from typing import Any, Dict, Optional

DEFAULT_ERRORS: Dict[int, str] = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    410: "Gone",
    429: "Too Many Requests",
    500: "Internal Server Error",
    503: "Service Not Available",
}


class BridgeError(Exception):
    """
    桥接流程中所有可预期失败的基类。

    details 为空时返回给调用方的是 "<status>: <reason>"；
    extra 中的字段（如 cooldown）会原样并入错误响应。
    """

    status_code: int = 500

    def __init__(self, details: Any = None, **extra: Any):
        self.details = details
        self.extra = {k: v for k, v in extra.items() if v is not None}
        super().__init__(details if isinstance(details, str) else self.default_details())

    def default_details(self) -> str:
        return f"{self.status_code}: {DEFAULT_ERRORS.get(self.status_code, 'Error')}"

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "error": True,
            "error_details": self.details if self.details is not None else self.default_details(),
        }
        body.update(self.extra)
        return body


class ValidationFailure(BridgeError):
    status_code = 400


class AuthFailure(BridgeError):
    """上游拒绝了凭证或会话；被锁定时带 cooldown（秒）"""

    status_code = 401

    def __init__(self, details: Any = None, cooldown: Optional[int] = None):
        super().__init__(details, cooldown=cooldown)
        self.cooldown = cooldown


class AccessBlocked(BridgeError):
    status_code = 403


class NotFoundFailure(BridgeError):
    status_code = 404


class RateLimited(BridgeError):
    status_code = 429


class ProtocolFailure(BridgeError):
    """上游返回了从未见过的结构，说明对接本身需要更新"""

    status_code = 500


class InternalFailure(BridgeError):
    status_code = 500


class MaintenanceFailure(BridgeError):
    status_code = 503
