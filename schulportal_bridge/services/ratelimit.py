from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Mapping, Optional
import time

from ..exceptions import AccessBlocked, RateLimited
from ..logger import get_logger
from ..storage.rate_windows import RateWindow, RateWindowStore

logger = get_logger(__name__)


class RateLimitAcceptance(str, Enum):
    ALLOWED = "allowed"
    REJECTED = "rejected"  # 429
    BLOCKED = "blocked"    # 403，拿不到客户端地址


@dataclass(frozen=True)
class RateLimitRule:
    window_seconds: int
    max_requests: int


def rules_from_settings(raw: Mapping[str, Mapping[str, int]]) -> Dict[str, RateLimitRule]:
    return {
        endpoint: RateLimitRule(rule["window_seconds"], rule["max_requests"])
        for endpoint, rule in raw.items()
    }


class RateLimiter:
    """固定窗口限流：每个 (endpoint, client) 每个窗口最多 max_requests 次"""

    def __init__(
        self,
        rules: Mapping[str, RateLimitRule],
        store: Optional[RateWindowStore] = None,
        clock: Callable[[], float] = time.monotonic,
        prune_every: int = 256,
    ):
        self.rules = dict(rules)
        self.store = store if store is not None else RateWindowStore()
        self.clock = clock
        self.prune_every = prune_every
        self._admissions = 0

    def admit(self, endpoint_key: str, client_key: Optional[str]) -> RateLimitAcceptance:
        if not client_key:
            return RateLimitAcceptance.BLOCKED

        rule = self.rules.get(endpoint_key)
        if rule is None:
            return RateLimitAcceptance.ALLOWED

        now = self.clock()

        def bump(window: Optional[RateWindow]) -> RateWindow:
            if window is None or now - window.window_start >= rule.window_seconds:
                return RateWindow(endpoint_key, client_key, 1, now)
            window.count += 1
            return window

        window = self.store.update(endpoint_key, client_key, bump)
        self._maybe_prune()

        if window.count > rule.max_requests:
            logger.info("Rate limit hit for %s (%d/%d)", endpoint_key, window.count, rule.max_requests)
            return RateLimitAcceptance.REJECTED
        return RateLimitAcceptance.ALLOWED

    def enforce(self, endpoint_key: str, client_key: Optional[str]) -> None:
        """admit() 的异常版本，供 HTTP 层使用"""
        outcome = self.admit(endpoint_key, client_key)
        if outcome is RateLimitAcceptance.BLOCKED:
            raise AccessBlocked()
        if outcome is RateLimitAcceptance.REJECTED:
            raise RateLimited()

    def prune(self) -> int:
        intervals = {name: float(rule.window_seconds) for name, rule in self.rules.items()}
        return self.store.prune(self.clock(), intervals)

    def _maybe_prune(self) -> None:
        self._admissions += 1
        if self.prune_every and self._admissions % self.prune_every == 0:
            removed = self.prune()
            if removed:
                logger.debug("Pruned %d stale rate windows", removed)
