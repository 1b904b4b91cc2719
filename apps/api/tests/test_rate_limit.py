from __future__ import annotations

import asyncio
from typing import Any

from lobohub.core.rate_limit import RULES, RateLimitRule, hit


class _FakeRedis:
    def __init__(self) -> None:
        self.counts: dict[str, int] = {}
        self.expiries: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key: str, seconds: int) -> Any:
        self.expiries[key] = seconds
        return True


def test_hit_blocks_after_limit_within_window() -> None:
    redis = _FakeRedis()
    rule = RateLimitRule(name="login", limit=2, window_seconds=300)

    results = [asyncio.run(hit(redis, rule, "10.0.0.1")) for _ in range(3)]  # type: ignore[arg-type]

    assert results == [True, True, False]
    assert redis.expiries == {"lobohub:rate:login:10.0.0.1": 300}


def test_login_rule_is_scoped_to_login_path() -> None:
    login_rule = next(rule for rule in RULES if rule.name == "login")
    assert login_rule.path == "/api/auth/login"
    assert login_rule.method == "POST"
