from typing import Dict
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

RateLimitRules = Dict[str, Dict[str, int]]


class Settings(BaseSettings):
    LOG_LEVEL: str = "INFO"

    # Upstream hosts
    LOGIN_URL: str = "https://login.bildung.hessen.de"
    PORTAL_LOGIN_URL: str = "https://login.schulportal.hessen.de/"
    CONNECT_URL: str = "https://connect.schulportal.hessen.de/"
    START_URL: str = "https://start.schulportal.hessen.de"
    SAML_PROXY_URL: str = "https://llngproxy01.schulportal.hessen.de"
    MOODLE_URL_TEMPLATE: str = "https://mo{school}.schulportal.hessen.de"
    MOODLE_BRIDGE_COOKIE: str = "mo-prod01"

    USER_AGENT: str = "SchulportalBridge (+https://github.com/DerOwnerHD/NuxtSchulportal)"
    HTTP_TIMEOUT: float = 10.0

    FINGERPRINT_PLACEHOLDER: str = "WeNeedToFillThese32CharactersMan"

    # 门户公布的 RSA 公钥（PEM），旧版登录握手用；为空时旧版登录不可用
    SPH_PUBLIC_KEY: str = ""

    # 部署在反向代理后才打开；只采信代理追加的最右 TRUSTED_PROXY_HOPS 个条目
    TRUST_FORWARDED_FOR: bool = False
    TRUSTED_PROXY_HOPS: int = 1

    # endpoint key -> {"window_seconds": .., "max_requests": ..}
    RATE_LIMITS: RateLimitRules = {
        "login": {"window_seconds": 15, "max_requests": 2},
        "autologin": {"window_seconds": 60, "max_requests": 6},
        "moodle_login": {"window_seconds": 30, "max_requests": 3},
    }
    RATE_LIMIT_PRUNE_EVERY: int = 256

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("HTTP_TIMEOUT")
    @classmethod
    def validate_http_timeout(cls, v: float):
        if v <= 0:
            raise ValueError("HTTP_TIMEOUT must be positive")
        return v

    @field_validator("FINGERPRINT_PLACEHOLDER")
    @classmethod
    def validate_fingerprint(cls, v: str):
        if len(v) != 32:
            raise ValueError("FINGERPRINT_PLACEHOLDER must be exactly 32 characters long")
        return v

    @field_validator("MOODLE_URL_TEMPLATE")
    @classmethod
    def validate_moodle_template(cls, v: str):
        if "{school}" not in v:
            raise ValueError("MOODLE_URL_TEMPLATE must contain a '{school}' placeholder")
        return v.rstrip("/")

    @field_validator("TRUSTED_PROXY_HOPS")
    @classmethod
    def validate_proxy_hops(cls, v: int):
        if v < 1:
            raise ValueError("TRUSTED_PROXY_HOPS must be at least 1")
        return v

    @field_validator("RATE_LIMITS")
    @classmethod
    def validate_rate_limits(cls, v: RateLimitRules):
        for endpoint, rule in v.items():
            for key in ("window_seconds", "max_requests"):
                if key not in rule:
                    raise ValueError(f"RATE_LIMITS[{endpoint}] must include '{key}'")
                if not isinstance(rule[key], int) or rule[key] < 1:
                    raise ValueError(f"RATE_LIMITS[{endpoint}].{key} must be a positive integer")
        return v

    # Helpers
    def bridge_login_prefix(self) -> str:
        return f"{self.START_URL.rstrip('/')}/schulportallogin.php?k"

settings = Settings()
